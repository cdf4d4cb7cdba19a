"""
Read-side projections for requests.

Kept apart from the write-side model: each function assembles a Request
together with its department, path, assignee, attachments and (for the
detail view) transition history into one plain dict, eager-loading the
relations in a fixed number of queries.

Visibility rules come from the authorization gate; nothing here filters
by role on its own.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from reqflow.core.exceptions import ForbiddenError
from reqflow.models.organization import DepartmentMember
from reqflow.models.request import Request
from reqflow.models.workflow import WorkflowPath
from reqflow.services.authorization import (
    Actor,
    ensure_admin,
    ensure_can_view,
    ensure_department_a_member,
)
from reqflow.services.helpers.lookups import find_department_a, get_active_request, get_department_a
from reqflow.services.transition_recorder import get_history

logger = logging.getLogger(__name__)


def _request_load_options():
    return (
        selectinload(Request.owner),
        selectinload(Request.assignee),
        selectinload(Request.current_department),
        selectinload(Request.workflow_path).selectinload(WorkflowPath.steps),
        selectinload(Request.attachments),
    )


def _person(user):
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def project_request(req: Request, *, include_history: bool = False) -> dict:
    """Assemble the API projection of one request."""
    from reqflow.services.routing import available_actions

    d = req.to_dict()
    d["owner"] = _person(req.owner)
    d["current_user"] = _person(req.assignee)
    d["current_department"] = req.current_department.to_dict() if req.current_department else None
    d["workflow_path"] = req.workflow_path.to_dict() if req.workflow_path else None
    d["attachments"] = [a.to_dict() for a in req.attachments]
    d["available_actions"] = available_actions(req)
    if include_history:
        d["transitions"] = [t.to_dict() for t in get_history(req.id)]
    return d


# ── Lists ────────────────────────────────────────────────────────────────────


def list_requests_for_owner(actor: Actor) -> list[dict]:
    """The actor's own requests, newest first."""
    rows = (
        Request.query_active()
        .filter(Request.owner_id == actor.user_id)
        .options(*_request_load_options())
        .order_by(Request.created_at.desc(), Request.id.desc())
        .all()
    )
    return [project_request(r) for r in rows]


def list_pending_for_department_a(actor: Actor) -> list[dict]:
    """Department A's triage queue: pending requests, oldest submission first."""
    dept_a = get_department_a()
    ensure_department_a_member(actor, dept_a.id)
    rows = (
        Request.query_active()
        .filter(Request.status == "pending", Request.current_department_id == dept_a.id)
        .options(*_request_load_options())
        .order_by(Request.submitted_at.asc(), Request.id.asc())
        .all()
    )
    return [project_request(r) for r in rows]


def list_requests_for_department(actor: Actor, status: str | None = None) -> list[dict]:
    """Requests currently owned by one of the actor's departments.

    Managers see every request at their department; employees only the
    ones assigned to them.
    """
    if not actor.memberships:
        raise ForbiddenError(
            "Department membership required", actor_id=actor.user_id, action="list_department",
        )
    managed = [d for d, role in actor.memberships.items() if role == "manager"]
    staffed = [d for d, role in actor.memberships.items() if role != "manager"]

    clauses = []
    if managed:
        clauses.append(Request.current_department_id.in_(managed))
    if staffed:
        clauses.append(
            (Request.current_department_id.in_(staffed)) & (Request.current_user_id == actor.user_id)
        )

    q = Request.query_active().filter(or_(*clauses))
    if status:
        q = q.filter(Request.status == status)
    rows = (
        q.options(*_request_load_options())
        .order_by(Request.updated_at.desc(), Request.id.desc())
        .all()
    )
    return [project_request(r) for r in rows]


def list_department_employees(actor: Actor) -> list[dict]:
    """Employees of every department the actor manages."""
    managed = actor.managed_department_ids()
    if not managed:
        raise ForbiddenError(
            "Only department managers may list employees",
            actor_id=actor.user_id,
            action="list_employees",
        )
    rows = (
        DepartmentMember.query
        .filter(DepartmentMember.department_id.in_(managed), DepartmentMember.role == "employee")
        .options(selectinload(DepartmentMember.user))
        .order_by(DepartmentMember.department_id, DepartmentMember.user_id)
        .all()
    )
    return [m.to_dict() for m in rows if m.user is not None and m.user.is_active]


def list_workflow_paths() -> list[dict]:
    rows = (
        WorkflowPath.query
        .filter_by(is_active=True)
        .options(selectinload(WorkflowPath.steps))
        .order_by(WorkflowPath.name)
        .all()
    )
    return [p.to_dict() for p in rows]


def admin_requests_query(actor: Actor, status: str | None = None, include_deleted: bool = False):
    """Unscoped request query for administrators (caller paginates)."""
    ensure_admin(actor)
    q = Request.query if include_deleted else Request.query_active()
    if status:
        q = q.filter(Request.status == status)
    return q.options(*_request_load_options()).order_by(Request.created_at.desc(), Request.id.desc())


# ── Detail ───────────────────────────────────────────────────────────────────


def get_visible_request(request_id: int, actor: Actor) -> Request:
    req = get_active_request(request_id)
    dept_a = find_department_a()
    ensure_can_view(actor, req, department_a_id=dept_a.id if dept_a else None)
    return req


def get_request_detail(request_id: int, actor: Actor) -> dict:
    """Full projection including the chronological transition history."""
    return project_request(get_visible_request(request_id, actor), include_history=True)


def transition_history(request_id: int, actor: Actor) -> list[dict]:
    req = get_visible_request(request_id, actor)
    return [t.to_dict() for t in get_history(req.id)]
