"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.principal.

  Authorization: Bearer <token>  →  g.principal = Principal(id=sub, role=role)

A missing, expired or invalid token leaves ``g.principal`` as None; the
authorization guard then raises AuthenticationError for any call that
needs a principal. This middleware never blocks a request on its own.
"""

import logging

import jwt as pyjwt
from flask import g, request

from pathway_studio.auth import principal_from_claims
from pathway_studio.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.principal = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.info("Invalid access token on %s", path)
            return

        g.principal = principal_from_claims(payload)
