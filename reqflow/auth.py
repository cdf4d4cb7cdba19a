"""
Request Workflow Service
Identity adapter — resolves the acting user for every API call.

Credentials are managed by the external identity service; this module
only maps an already-authenticated caller onto an ``Actor``:

    1. ``Authorization: Bearer <jwt>``  (sub claim = user id, verified in
       reqflow.middleware.jwt_auth)
    2. ``X-User-Id: <id>``              (only when TRUST_USER_HEADER is on,
       i.e. behind a gateway that terminates auth, and in dev/test)

The resolved actor is stored in ``g.actor``. Every /api/v1/* route except
the health check requires one; otherwise the call is answered with 401.
"""

import logging

from flask import current_app, g, request

from reqflow.services.authorization import Actor, load_actor
from reqflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that never require an actor
PUBLIC_PATHS = frozenset({"/api/v1/health"})


def _resolve_actor() -> Actor | None:
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None and current_app.config.get("TRUST_USER_HEADER"):
        user_id = request.headers.get("X-User-Id", "").strip() or None
    if user_id is None:
        return None
    return load_actor(user_id)


def current_actor() -> Actor:
    """The authenticated actor of the current API call."""
    return g.actor


def init_auth(app):
    """
    Install the identity middleware on the Flask app.

    Must be registered after the JWT middleware so ``g.jwt_user_id`` is set.
    """

    @app.before_request
    def _before_request_auth():
        g.actor = None
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return None

        jwt_error = getattr(g, "jwt_error", None)
        if jwt_error:
            return api_error(E.UNAUTHENTICATED, jwt_error)

        g.actor = _resolve_actor()
        if g.actor is None:
            return api_error(
                E.UNAUTHENTICATED,
                "Authentication required. Provide a Bearer token for an active user.",
            )
        return None

    logger.info(
        "Auth middleware installed (trust X-User-Id=%s)", app.config.get("TRUST_USER_HEADER", False)
    )
