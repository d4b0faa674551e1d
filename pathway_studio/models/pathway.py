"""
Pathway Studio
Pathway template domain models.

Models:
    - PathwayTemplate: reusable, versionable workflow blueprint.
    - Phase: one typed, ordered step of a template.

Lifecycle guards and the closed phase-type set live here so that the
service layer and the blueprints validate against the same constants.
"""

import uuid
from datetime import datetime, timezone

from pathway_studio.models import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


# ── Phase types ──────────────────────────────────────────────────────────────

PHASE_TYPES = (
    "Form",
    "Review",
    "Email",
    "Scheduling",
    "Decision",
    "Recommendation",
    "Screening",
)

# Only these phase types may route to a next phase on success/failure.
BRANCHING_PHASE_TYPES = frozenset({"Decision", "Review"})

BRANCH_SUCCESS_KEY = "next_phase_id_on_success"
BRANCH_FAILURE_KEY = "next_phase_id_on_failure"
BRANCH_KEYS = (BRANCH_SUCCESS_KEY, BRANCH_FAILURE_KEY)


# ── Template lifecycle ───────────────────────────────────────────────────────

TEMPLATE_STATUSES = ("draft", "pending_review", "published", "archived")

TEMPLATE_TRANSITIONS = {
    "draft":          ["pending_review", "published", "archived"],
    "pending_review": ["draft", "published"],
    "published":      ["archived"],
    "archived":       ["draft"],
}


def validate_template_transition(old_status, new_status):
    """Return True if PathwayTemplate status transition is valid."""
    return new_status in TEMPLATE_TRANSITIONS.get(old_status, [])


# Fields a version snapshot captures and a rollback restores.
TEMPLATE_MUTABLE_FIELDS = (
    "name",
    "description",
    "is_private",
    "status",
    "is_visible_to_applicants",
    "tags",
    "application_open_date",
    "participation_deadline",
    "general_instructions",
)

PHASE_COPY_FIELDS = (
    "name",
    "type",
    "order_index",
    "description",
    "config",
    "phase_start_date",
    "phase_end_date",
    "applicant_instructions",
    "manager_instructions",
    "is_visible_to_applicants",
)


def _iso(value):
    return value.isoformat() if value else None


class PathwayTemplate(db.Model):
    """
    A workflow blueprint owned by its creator.

    Readable by admins and the creator always, by everyone else only when
    ``is_private`` is false and ``status`` is ``published``. Writable by
    admins and the creator only.
    """

    __tablename__ = "pathway_templates"
    __table_args__ = (
        db.Index("ix_pathway_templates_creator", "creator_id"),
        db.Index("ix_pathway_templates_status", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    creator_id = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.String(20), nullable=False, default="draft",
        comment="draft | pending_review | published | archived",
    )
    is_visible_to_applicants = db.Column(db.Boolean, nullable=False, default=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    application_open_date = db.Column(db.Date, nullable=True)
    participation_deadline = db.Column(db.Date, nullable=True)
    general_instructions = db.Column(db.Text, nullable=True)
    last_updated_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    phases = db.relationship(
        "Phase",
        back_populates="template",
        order_by="Phase.order_index",
        cascade="all, delete-orphan",
    )
    versions = db.relationship(
        "TemplateVersion",
        back_populates="template",
        cascade="all, delete-orphan",
    )

    @property
    def is_publicly_readable(self) -> bool:
        return not self.is_private and self.status == "published"

    def snapshot_fields(self) -> dict:
        """Mutable fields in JSON-safe form, as frozen into a version snapshot."""
        return {
            "id": self.id,
            "creator_id": self.creator_id,
            "name": self.name,
            "description": self.description,
            "is_private": self.is_private,
            "status": self.status,
            "is_visible_to_applicants": self.is_visible_to_applicants,
            "tags": list(self.tags or []),
            "application_open_date": _iso(self.application_open_date),
            "participation_deadline": _iso(self.participation_deadline),
            "general_instructions": self.general_instructions,
        }

    def to_dict(self, include_phases: bool = False) -> dict:
        result = {
            **self.snapshot_fields(),
            "last_updated_by": self.last_updated_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_phases:
            result["phases"] = [p.to_dict() for p in self.phases]
        return result

    def __repr__(self):
        return f"<PathwayTemplate {self.id}: {self.name!r} [{self.status}]>"


class Phase(db.Model):
    """
    A single typed step within a template.

    ``order_index`` values across one template form the permutation
    ``0..n-1``. ``config`` is an opaque, type-tagged JSON object; only
    Decision and Review phases may carry non-null branch targets in it.
    """

    __tablename__ = "phases"
    __table_args__ = (
        db.Index("ix_phases_template_order", "pathway_template_id", "order_index"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    pathway_template_id = db.Column(
        db.String(36),
        db.ForeignKey("pathway_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(
        db.String(20), nullable=False,
        comment="Form | Review | Email | Scheduling | Decision | Recommendation | Screening",
    )
    order_index = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    config = db.Column(db.JSON, nullable=False, default=dict)
    phase_start_date = db.Column(db.Date, nullable=True)
    phase_end_date = db.Column(db.Date, nullable=True)
    applicant_instructions = db.Column(db.Text, nullable=True)
    manager_instructions = db.Column(db.Text, nullable=True)
    is_visible_to_applicants = db.Column(db.Boolean, nullable=False, default=True)
    last_updated_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    template = db.relationship("PathwayTemplate", back_populates="phases")

    @property
    def supports_branching(self) -> bool:
        return self.type in BRANCHING_PHASE_TYPES

    def branch_targets(self) -> dict:
        cfg = self.config or {}
        return {key: cfg.get(key) for key in BRANCH_KEYS}

    def snapshot_fields(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "order_index": self.order_index,
            "description": self.description,
            "config": dict(self.config or {}),
            "phase_start_date": _iso(self.phase_start_date),
            "phase_end_date": _iso(self.phase_end_date),
            "applicant_instructions": self.applicant_instructions,
            "manager_instructions": self.manager_instructions,
            "is_visible_to_applicants": self.is_visible_to_applicants,
        }

    def to_dict(self) -> dict:
        return {
            **self.snapshot_fields(),
            "pathway_template_id": self.pathway_template_id,
            "last_updated_by": self.last_updated_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Phase {self.id}: {self.type} #{self.order_index} {self.name!r}>"
