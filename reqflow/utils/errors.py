"""Standardised API error responses.

Usage
-----
    from reqflow.utils.errors import api_error, E

    return api_error(E.VALIDATION_REQUIRED, "Body must be a JSON object")
    return api_error(E.UNAUTHENTICATED, "Authentication required")
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Malformed transport input – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Identity – HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Business rules – HTTP 422
    VALIDATION_FAILED = "ERR_VALIDATION_FAILED"
    ILLEGAL_TRANSITION = "ERR_ILLEGAL_TRANSITION"
    INVALID_ROUTING_STATE = "ERR_INVALID_ROUTING_STATE"
    WEIGHT_OVERFLOW = "ERR_WEIGHT_OVERFLOW"

    # Server – HTTP 500
    CONFIGURATION_MISSING = "ERR_CONFIGURATION_MISSING"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.VALIDATION_FAILED: 422,
    E.ILLEGAL_TRANSITION: 422,
    E.INVALID_ROUTING_STATE: 422,
    E.WEIGHT_OVERFLOW: 422,
    E.CONFIGURATION_MISSING: 500,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

# Domain error kind → code
KIND_CODES: dict[str, str] = {
    "not_found": E.NOT_FOUND,
    "forbidden": E.FORBIDDEN,
    "validation_failed": E.VALIDATION_FAILED,
    "illegal_transition": E.ILLEGAL_TRANSITION,
    "invalid_routing_state": E.INVALID_ROUTING_STATE,
    "weight_overflow": E.WEIGHT_OVERFLOW,
    "configuration_missing": E.CONFIGURATION_MISSING,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
    kind: str | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload.
    kind : str, optional
        Domain error kind, echoed so clients can branch without parsing codes.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if kind:
        body["kind"] = kind
    if details:
        body["details"] = details

    return jsonify(body), http_status


def domain_error_response(error):
    """Convert a ``DomainError`` into the standard JSON error response."""
    code = KIND_CODES.get(error.kind, E.INTERNAL)
    return api_error(
        code,
        str(error),
        status=error.http_status,
        details=error.details,
        kind=error.kind,
    )
