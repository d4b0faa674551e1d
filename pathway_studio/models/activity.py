"""
Pathway Studio
Template activity log model.

Models:
    - TemplateActivityLog: append-only record of what changed on a template.
"""

from datetime import datetime, timezone

from pathway_studio.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_EVENT_TYPES = {
    # Template lifecycle
    "template.created",
    "template.updated",
    "template.deleted",
    "template.status_changed",
    "template.published",
    "template.cloned",
    "template.rolled_back",
    # Phase graph
    "phase.created",
    "phase.updated",
    "phase.branching_updated",
    "phase.deleted",
    "phases.reordered",
    # Versioning / instances
    "version.created",
    "campaign.phases_copied",
}


class TemplateActivityLog(db.Model):
    """
    Immutable activity trail for one template.

    ``template_id`` is deliberately not a foreign key: entries outlive a
    hard-deleted template.
    """

    __tablename__ = "template_activity_log"
    __table_args__ = (
        db.Index("idx_activity_template_ts", "template_id", "created_at"),
        db.Index("idx_activity_event", "event_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.String(36), nullable=False)
    actor_id = db.Column(
        db.String(64), nullable=True,
        comment="Principal id; null for system actions",
    )
    event_type = db.Column(
        db.String(60), nullable=False,
        comment="template.published | phase.deleted | phases.reordered | …",
    )
    description = db.Column(db.String(500), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "actor_id": self.actor_id,
            "event_type": self.event_type,
            "description": self.description,
            "details": self.details or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<TemplateActivityLog {self.id}: {self.event_type} on {self.template_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_activity(
    *,
    template_id: str,
    actor_id: str | None,
    event_type: str,
    description: str,
    details: dict | None = None,
) -> TemplateActivityLog:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) TemplateActivityLog instance.
    """
    if event_type not in ACTIVITY_EVENT_TYPES:
        raise ValueError(f"Unknown activity event_type: {event_type}")

    entry = TemplateActivityLog(
        template_id=str(template_id),
        actor_id=actor_id,
        event_type=event_type,
        description=description[:500],
        details=details or None,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
