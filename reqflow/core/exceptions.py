"""
Workflow-wide exception hierarchy.

Every service raises one of these types. Each carries a stable
machine-readable ``kind`` and the HTTP status the transport maps it to,
so a single app-level error handler produces consistent responses:

    NotFoundError              → 404
    ForbiddenError             → 403
    ValidationError            → 422
    IllegalTransitionError     → 422
    InvalidRoutingStateError   → 422
    WeightOverflowError        → 422
    ConfigurationMissingError  → 500

Usage:
    from reqflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Request", resource_id=42)
    raise ValidationError("rejection_reason is required", details={"rejection_reason": "required"})
"""

from decimal import Decimal


class DomainError(Exception):
    """Base for all typed workflow failures.

    Args:
        message: Human-readable explanation.
        details: Optional structured payload for API responses.
    """

    kind = "domain_error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised for missing or soft-deleted entities.

    Args:
        resource: Human-readable model name (e.g. "Request", "WorkflowPath").
        resource_id: The PK that was looked up.
    """

    kind = "not_found"
    http_status = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(DomainError):
    """Raised by the authorization gate when the actor lacks the capability."""

    kind = "forbidden"
    http_status = 403

    def __init__(self, message: str, *, actor_id: int | None = None, action: str | None = None) -> None:
        self.actor_id = actor_id
        self.action = action
        super().__init__(message)


class ValidationError(DomainError):
    """Raised when input is missing, malformed, out of range, or references
    an entity that does not exist or is inactive."""

    kind = "validation_failed"
    http_status = 422


class IllegalTransitionError(DomainError):
    """Raised when an action is not legal for the request's current status,
    including a lost optimistic-concurrency race."""

    kind = "illegal_transition"
    http_status = 422

    def __init__(self, action: str, current_status: str, reason: str | None = None) -> None:
        self.action = action
        self.current_status = current_status
        self.reason = reason
        msg = f"Cannot '{action}' request (status={current_status})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"action": action, "status": current_status})


class InvalidRoutingStateError(DomainError):
    """Raised when the request's position cannot be resolved inside its path."""

    kind = "invalid_routing_state"
    http_status = 422


class WeightOverflowError(DomainError):
    """Raised when active evaluation weights would exceed the limit."""

    kind = "weight_overflow"
    http_status = 422

    def __init__(self, current_total: Decimal, requested: Decimal, limit: Decimal) -> None:
        self.current_total = current_total
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"Active evaluation weights would total {current_total + requested} "
            f"(limit {limit}, current {current_total})",
            details={
                "current_total": str(current_total),
                "requested": str(requested),
                "remaining": str(limit - current_total),
            },
        )


class ConfigurationMissingError(DomainError):
    """Raised when a deployment precondition (e.g. Department A) is absent."""

    kind = "configuration_missing"
    http_status = 500
