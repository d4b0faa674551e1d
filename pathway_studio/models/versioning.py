"""
Pathway Studio
Template versioning model.

Models:
    - TemplateVersion: immutable, append-only snapshot of a template and
      all of its phases, numbered 1..N per template.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import event

from pathway_studio.models import db


class TemplateVersion(db.Model):
    """
    One numbered snapshot of a template.

    ``snapshot`` layout::

        {"template": {<PathwayTemplate.snapshot_fields()>},
         "phases":   [<Phase.snapshot_fields()>, ...]}   # ordered by order_index

    Rows are never updated; the ``before_update`` listener below rejects
    any flush that would modify a persisted version.
    """

    __tablename__ = "pathway_template_versions"
    __table_args__ = (
        db.UniqueConstraint(
            "pathway_template_id", "version_number", name="uq_template_version_number",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    pathway_template_id = db.Column(
        db.String(36),
        db.ForeignKey("pathway_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version_number = db.Column(db.Integer, nullable=False)
    snapshot = db.Column(db.JSON, nullable=False)
    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    template = db.relationship("PathwayTemplate", back_populates="versions")

    @property
    def snapshot_phases(self) -> list[dict]:
        return list((self.snapshot or {}).get("phases") or [])

    @property
    def snapshot_template(self) -> dict:
        return dict((self.snapshot or {}).get("template") or {})

    def to_dict(self, include_snapshot: bool = True) -> dict:
        result = {
            "id": self.id,
            "pathway_template_id": self.pathway_template_id,
            "version_number": self.version_number,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "phase_count": len(self.snapshot_phases),
        }
        if include_snapshot:
            result["snapshot"] = self.snapshot
        return result

    def __repr__(self):
        return f"<TemplateVersion {self.pathway_template_id} v{self.version_number}>"


@event.listens_for(TemplateVersion, "before_update")
def _reject_version_update(mapper, connection, target):
    raise ValueError(
        f"TemplateVersion {target.id} is immutable; create a new version instead"
    )
