"""
JWT Service — access-token generation and verification.

Lifetime:   JWT_ACCESS_EXPIRES seconds (default 900)
Leeway:     JWT_LEEWAY seconds of clock skew tolerated (default 0)
Algorithm:  HS256

Token payload:
{
    "sub": <principal id>,
    "role": "admin" | "editor" | ...,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Tokens are minted by the identity provider in front of this service;
``generate_access_token`` exists for that integration and for tests.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 900       # 15 minutes
ALGORITHM = "HS256"
ACCESS_TYPE = "access"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: str, role: str = "", expires_in: int | None = None) -> str:
    """Generate a short-lived access token for a principal."""
    now = datetime.now(timezone.utc)
    lifetime = _get_access_expires() if expires_in is None else expires_in
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": ACCESS_TYPE,
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_access_token(token: str) -> dict:
    """
    Verify an access token and return its claims.

    ``exp`` and ``sub`` are mandatory; a token of any other ``type``
    (e.g. a refresh token from the identity provider) is rejected.
    Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError.
    """
    payload = jwt.decode(
        token,
        _get_secret(),
        algorithms=[ALGORITHM],
        options={"require": ["exp", "sub"]},
        leeway=current_app.config.get("JWT_LEEWAY", 0),
    )
    if payload.get("type") != ACCESS_TYPE:
        raise jwt.InvalidTokenError(f"Expected {ACCESS_TYPE} token, got {payload.get('type')}")
    return payload
