"""pathway_engine_schema

Creates the pathway engine tables:
  - pathway_templates          — versionable workflow blueprints
  - phases                     — typed, ordered steps of a template
  - pathway_template_versions  — immutable numbered snapshots
  - campaigns                  — running instances built from templates
  - campaign_phases            — phases copied into a campaign (with provenance)
  - template_activity_log      — append-only change history per template

Tables created conditionally (IF NOT EXISTS semantics) so the migration
can run against a database that already received them via db.create_all().

Revision ID: a1f0c3d2b4e5
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a1f0c3d2b4e5'
down_revision = None
branch_labels = None
depends_on = None


def _phase_columns():
    return [
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "type", sa.String(length=20), nullable=False,
            comment="Form | Review | Email | Scheduling | Decision | Recommendation | Screening",
        ),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("phase_start_date", sa.Date(), nullable=True),
        sa.Column("phase_end_date", sa.Date(), nullable=True),
        sa.Column("applicant_instructions", sa.Text(), nullable=True),
        sa.Column("manager_instructions", sa.Text(), nullable=True),
        sa.Column("is_visible_to_applicants", sa.Boolean(), nullable=False),
    ]


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── PathwayTemplate ───────────────────────────────────────────────────
    if "pathway_templates" not in existing:
        op.create_table(
            "pathway_templates",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("creator_id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_private", sa.Boolean(), nullable=False),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                comment="draft | pending_review | published | archived",
            ),
            sa.Column("is_visible_to_applicants", sa.Boolean(), nullable=False),
            sa.Column("tags", sa.JSON(), nullable=False),
            sa.Column("application_open_date", sa.Date(), nullable=True),
            sa.Column("participation_deadline", sa.Date(), nullable=True),
            sa.Column("general_instructions", sa.Text(), nullable=True),
            sa.Column("last_updated_by", sa.String(length=64), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_pathway_templates_creator", "pathway_templates", ["creator_id"])
        op.create_index("ix_pathway_templates_status", "pathway_templates", ["status"])

    # ── Phase ─────────────────────────────────────────────────────────────
    if "phases" not in existing:
        op.create_table(
            "phases",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("pathway_template_id", sa.String(length=36), nullable=False),
            *_phase_columns(),
            sa.Column("last_updated_by", sa.String(length=64), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(
                ["pathway_template_id"], ["pathway_templates.id"], ondelete="CASCADE",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_phases_pathway_template_id", "phases", ["pathway_template_id"])
        op.create_index("ix_phases_template_order", "phases", ["pathway_template_id", "order_index"])

    # ── TemplateVersion ───────────────────────────────────────────────────
    if "pathway_template_versions" not in existing:
        op.create_table(
            "pathway_template_versions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("pathway_template_id", sa.String(length=36), nullable=False),
            sa.Column("version_number", sa.Integer(), nullable=False),
            sa.Column("snapshot", sa.JSON(), nullable=False),
            sa.Column("created_by", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(
                ["pathway_template_id"], ["pathway_templates.id"], ondelete="CASCADE",
            ),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "pathway_template_id", "version_number", name="uq_template_version_number",
            ),
        )
        op.create_index(
            "ix_pathway_template_versions_pathway_template_id",
            "pathway_template_versions", ["pathway_template_id"],
        )

    # ── Campaign ──────────────────────────────────────────────────────────
    if "campaigns" not in existing:
        op.create_table(
            "campaigns",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("pathway_template_id", sa.String(length=36), nullable=True),
            sa.Column("creator_id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("is_public", sa.Boolean(), nullable=False),
            sa.Column(
                "status", sa.String(length=20), nullable=False,
                comment="draft | active | completed | archived",
            ),
            sa.Column("config", sa.JSON(), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(
                ["pathway_template_id"], ["pathway_templates.id"], ondelete="SET NULL",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_campaigns_pathway_template_id", "campaigns", ["pathway_template_id"])
        op.create_index("ix_campaigns_creator_id", "campaigns", ["creator_id"])

    # ── CampaignPhase ─────────────────────────────────────────────────────
    if "campaign_phases" not in existing:
        op.create_table(
            "campaign_phases",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("campaign_id", sa.String(length=36), nullable=False),
            sa.Column("original_phase_id", sa.String(length=36), nullable=True),
            *_phase_columns(),
            *_timestamps(),
            sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["original_phase_id"], ["phases.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_campaign_phases_campaign_id", "campaign_phases", ["campaign_id"])
        op.create_index("ix_campaign_phases_original_phase_id", "campaign_phases", ["original_phase_id"])
        op.create_index(
            "ix_campaign_phases_campaign_order", "campaign_phases", ["campaign_id", "order_index"],
        )

    # ── TemplateActivityLog ───────────────────────────────────────────────
    if "template_activity_log" not in existing:
        op.create_table(
            "template_activity_log",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column(
                "template_id", sa.String(length=36), nullable=False,
                comment="Not a foreign key; history outlives the template.",
            ),
            sa.Column("actor_id", sa.String(length=64), nullable=True),
            sa.Column("event_type", sa.String(length=60), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=False),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "idx_activity_template_ts", "template_activity_log", ["template_id", "created_at"],
        )
        op.create_index("idx_activity_event", "template_activity_log", ["event_type"])


def downgrade():
    for table in (
        "template_activity_log",
        "campaign_phases",
        "campaigns",
        "pathway_template_versions",
        "phases",
        "pathway_templates",
    ):
        op.drop_table(table)
