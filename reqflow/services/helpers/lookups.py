"""
Entity lookup helpers shared by the workflow services.

Every get-by-id in the services goes through these helpers so that
soft-deleted requests are indistinguishable from missing ones: both raise
NotFoundError → HTTP 404.

Usage:
    req = get_active_request(request_id)
    path = get_or_raise(WorkflowPath, path_id)
    dept_a = get_department_a()
"""

import logging

from sqlalchemy import select

from reqflow.core.exceptions import ConfigurationMissingError, NotFoundError, ValidationError
from reqflow.models import db
from reqflow.models.organization import Department
from reqflow.models.request import Request

logger = logging.getLogger(__name__)


def as_int(value, field: str) -> int:
    """Coerce an id-like input to int, raising ValidationError when absent or malformed."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"}) from exc


def get_or_raise(model, pk, label: str | None = None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj


def get_active_request(request_id: int) -> Request:
    """Fetch a Request that has not been soft-deleted.

    Raises:
        NotFoundError: If the request does not exist or was soft-deleted.
    """
    stmt = select(Request).where(Request.id == request_id, Request.deleted_at.is_(None))
    req = db.session.execute(stmt).scalar_one_or_none()
    if req is None:
        logger.debug("get_active_request: Request id=%s not found or deleted", request_id)
        raise NotFoundError(resource="Request", resource_id=request_id)
    return req


def find_department_a() -> Department | None:
    """Return the unique Department A, or None when it is not configured."""
    return Department.query.filter_by(is_department_a=True).first()


def get_department_a() -> Department:
    """Return the unique Department A.

    Raises:
        ConfigurationMissingError: If no department carries is_department_a.
    """
    dept = find_department_a()
    if dept is None:
        logger.error("Department A is not configured")
        raise ConfigurationMissingError(
            "Department A not found. Please contact administrator.",
            details={"setting": "is_department_a"},
        )
    return dept
