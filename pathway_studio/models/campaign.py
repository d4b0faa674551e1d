"""
Pathway Studio
Campaign (template instance) models.

Models:
    - Campaign: a live run built from a pathway template.
    - CampaignPhase: a phase copied into a campaign; keeps a provenance
      pointer to the template phase it came from.

Campaigns have their own lifecycle, distinct from the template lifecycle
in ``models.pathway``.
"""

import uuid
from datetime import datetime, timezone

from pathway_studio.models import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


CAMPAIGN_STATUSES = ("draft", "active", "completed", "archived")

CAMPAIGN_TRANSITIONS = {
    "draft":     ["active", "archived"],
    "active":    ["completed", "archived"],
    "completed": ["archived"],
    "archived":  ["draft"],
}


def validate_campaign_transition(old_status, new_status):
    """Return True if Campaign status transition is valid."""
    return new_status in CAMPAIGN_TRANSITIONS.get(old_status, [])


class Campaign(db.Model):
    """A running instance of a pathway. Readable when public, writable by its creator."""

    __tablename__ = "campaigns"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    pathway_template_id = db.Column(
        db.String(36),
        db.ForeignKey("pathway_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    creator_id = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.String(20), nullable=False, default="draft",
        comment="draft | active | completed | archived",
    )
    config = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    phases = db.relationship(
        "CampaignPhase",
        back_populates="campaign",
        order_by="CampaignPhase.order_index",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pathway_template_id": self.pathway_template_id,
            "creator_id": self.creator_id,
            "name": self.name,
            "description": self.description,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_public": self.is_public,
            "status": self.status,
            "config": self.config or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Campaign {self.id}: {self.name!r} [{self.status}]>"


class CampaignPhase(db.Model):
    """
    A phase owned by a campaign.

    ``original_phase_id`` points at the template phase this row was copied
    from, or is null when the phase was authored directly on the campaign
    (or its source phase has since been deleted). Campaign phases take no
    part in template branching validation.
    """

    __tablename__ = "campaign_phases"
    __table_args__ = (
        db.Index("ix_campaign_phases_campaign_order", "campaign_id", "order_index"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    campaign_id = db.Column(
        db.String(36),
        db.ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    original_phase_id = db.Column(
        db.String(36),
        db.ForeignKey("phases.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    order_index = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    config = db.Column(db.JSON, nullable=False, default=dict)
    phase_start_date = db.Column(db.Date, nullable=True)
    phase_end_date = db.Column(db.Date, nullable=True)
    applicant_instructions = db.Column(db.Text, nullable=True)
    manager_instructions = db.Column(db.Text, nullable=True)
    is_visible_to_applicants = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    campaign = db.relationship("Campaign", back_populates="phases")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "original_phase_id": self.original_phase_id,
            "name": self.name,
            "type": self.type,
            "order_index": self.order_index,
            "description": self.description,
            "config": self.config or {},
            "phase_start_date": self.phase_start_date.isoformat() if self.phase_start_date else None,
            "phase_end_date": self.phase_end_date.isoformat() if self.phase_end_date else None,
            "applicant_instructions": self.applicant_instructions,
            "manager_instructions": self.manager_instructions,
            "is_visible_to_applicants": self.is_visible_to_applicants,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<CampaignPhase {self.id}: {self.type} #{self.order_index} from={self.original_phase_id}>"
