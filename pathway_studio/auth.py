"""
Pathway Studio
Principal resolution.

Provides:
    - Principal: the acting user, as ``{id, role}``
    - current_principal(): the principal-resolver contract used by the
      HTTP layer; reads what the JWT middleware stored on ``flask.g``
    - principal_from_claims(): builds a Principal from decoded token claims

Services never call ``current_principal()`` themselves; blueprints pass
the principal in explicitly, so the engine runs the same with or without
a request context.

Configuration:
    ADMIN_ROLE  — role name that grants admin rights (default "admin")
"""

import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app, g, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLE = "admin"


def _admin_role() -> str:
    if has_app_context():
        return current_app.config.get("ADMIN_ROLE", DEFAULT_ADMIN_ROLE)
    return DEFAULT_ADMIN_ROLE


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    id: str
    role: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == _admin_role()


def principal_from_claims(claims: dict) -> Optional[Principal]:
    """Return a Principal for a decoded access-token payload, or None if it has no subject."""
    sub = claims.get("sub")
    if sub is None or str(sub).strip() == "":
        return None
    role = claims.get("role") or ""
    return Principal(id=str(sub), role=str(role).strip().lower())


def current_principal() -> Optional[Principal]:
    """Return the principal resolved for the current request, or None."""
    return getattr(g, "principal", None)
