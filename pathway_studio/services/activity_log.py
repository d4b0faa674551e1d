"""
Template activity log — write-only side channel for template changes.

``record`` runs after the primary operation has committed, in its own
transaction. A failure to log never fails the operation that triggered
it: the error is rolled back and logged at WARNING.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from pathway_studio.models import db
from pathway_studio.models.activity import write_activity
from pathway_studio.services import authorization
from pathway_studio.services.helpers import template_repository as repo

logger = logging.getLogger(__name__)


def record(template_id, actor_id, event_type, description, details=None):
    """Append an activity entry. Returns the entry, or None if it could not be stored."""
    try:
        entry = write_activity(
            template_id=template_id,
            actor_id=actor_id,
            event_type=event_type,
            description=description,
            details=details,
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning(
            "Activity log write failed: %s", exc,
            extra={"template_id": template_id, "event_type": event_type, "actor_id": actor_id},
        )
        return None
    return entry


def list_activity(principal, template_id, limit=100):
    """Activity for a template the principal may read, newest first."""
    authorization.authorize(principal, template_id, authorization.READ)
    return repo.list_activity(template_id, limit=limit)
