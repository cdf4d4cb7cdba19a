"""
JWT Auth Middleware — parses a Bearer token from the Authorization header.

Tokens are issued by the external identity service; this service only
verifies them. The ``sub`` claim is the acting user's id.

Priority order (resolved in reqflow.auth):
  1. JWT (Authorization: Bearer <token>)  →  g.jwt_user_id
  2. X-User-Id header, when TRUST_USER_HEADER is enabled
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry; raises pyjwt.InvalidTokenError on failure."""
    secret = current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]
    algorithm = current_app.config.get("JWT_ALGORITHM", "HS256")
    return pyjwt.decode(
        token, secret, algorithms=[algorithm], options={"require": ["sub", "exp"]},
    )


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_error = None

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
            g.jwt_user_id = payload.get("sub")
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token: %s", exc)
            g.jwt_error = "Invalid token"
