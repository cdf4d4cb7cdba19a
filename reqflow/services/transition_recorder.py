"""
Transition Recorder — append-only audit trail of request routing.

Design decisions:
    - RequestTransition is APPEND-ONLY: no update, no delete. The ORM
      refuses updates (see models.request).
    - ``record_transition`` never commits. It joins the caller's unit of
      work so the Request mutation and its audit row succeed or fail
      together.
    - Reads are chronological (created_at, then id for same-instant rows).
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from reqflow.models import db
from reqflow.models.request import Request, RequestTransition

logger = logging.getLogger(__name__)


def record_transition(
    req: Request,
    *,
    action: str,
    actor_id: int,
    from_status: str,
    from_department_id: int | None,
    comments: str | None = None,
) -> RequestTransition:
    """Append one audit row describing the request's state after ``action``.

    The "to" side is read from the (already mutated) request.

    Args:
        req:                The request, after mutation.
        action:             Action name (e.g. "submit", "assign_path").
        actor_id:           User who performed the action.
        from_status:        Status before the action.
        from_department_id: Department before the action.
        comments:           Optional free text from the actor.
    """
    record = RequestTransition(
        request_id=req.id,
        action=action,
        actioned_by=actor_id,
        from_status=from_status,
        to_status=req.status,
        from_department_id=from_department_id,
        to_department_id=req.current_department_id,
        to_user_id=req.current_user_id,
        comments=(comments or "").strip() or None,
    )
    db.session.add(record)
    logger.debug(
        "Transition recorded",
        extra={"request_ref": req.id, "action": action, "actor_id": actor_id},
    )
    return record


def get_history(request_id: int) -> list[RequestTransition]:
    """Return all transitions for a request, oldest first, with names eager-loaded."""
    stmt = (
        select(RequestTransition)
        .where(RequestTransition.request_id == request_id)
        .options(
            selectinload(RequestTransition.actor),
            selectinload(RequestTransition.to_user),
            selectinload(RequestTransition.from_department),
            selectinload(RequestTransition.to_department),
        )
        .order_by(RequestTransition.created_at.asc(), RequestTransition.id.asc())
    )
    return list(db.session.execute(stmt).scalars())


def count_transitions(request_id: int) -> int:
    return RequestTransition.query.filter_by(request_id=request_id).count()
