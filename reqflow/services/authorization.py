"""
Authorization Gate — one capability check for every workflow action.

The identity collaborator tells us who is acting; this module decides
whether that actor may invoke a given action on a given request. Every
service calls ``authorize()`` (or ``ensure_can_view()``) instead of
repeating role / department filters per endpoint.

Actor roles:
    user      — may act only on requests they own (edit, submit, delete, attachments)
    manager   — department membership with role=manager
    employee  — department membership with role=employee; acts only on
                requests assigned to them (current_user_id == self)
    admin     — read and administrative management only; never routes requests

Usage:
    from reqflow.services.authorization import Actor, authorize

    authorize(actor, "assign_path", req, department_a_id=dept_a.id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from reqflow.core.exceptions import ForbiddenError
from reqflow.models import db
from reqflow.models.organization import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the identity collaborator."""

    user_id: int
    name: str = ""
    role: str = "user"
    memberships: dict[int, str] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def is_member_of(self, department_id: int | None) -> bool:
        return department_id is not None and department_id in self.memberships

    def is_manager_of(self, department_id: int | None) -> bool:
        return department_id is not None and self.memberships.get(department_id) == "manager"

    def managed_department_ids(self) -> list[int]:
        return sorted(d for d, r in self.memberships.items() if r == "manager")

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            user_id=user.id,
            name=user.name,
            role=user.role,
            memberships={m.department_id: m.role for m in user.memberships},
        )


def load_actor(user_id) -> Actor | None:
    """Build an Actor for an active user id, or None if unknown/inactive."""
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
    if user is None or not user.is_active:
        return None
    return Actor.from_user(user)


# ── Capability predicates ────────────────────────────────────────────────────
# Each predicate receives (actor, request, department_a_id, current_step).


def _owner(actor, req, dept_a_id, step):
    return req.owner_id == actor.user_id


def _department_a_manager(actor, req, dept_a_id, step):
    return actor.is_manager_of(dept_a_id)


def _triage(actor, req, dept_a_id, step):
    # Department A decides at triage; once in a path the owning manager may too.
    if actor.is_manager_of(dept_a_id):
        return True
    return req.status == "in_review" and actor.is_manager_of(req.current_department_id)


def _current_department_manager(actor, req, dept_a_id, step):
    return actor.is_manager_of(req.current_department_id)


def _assigned_employee(actor, req, dept_a_id, step):
    return (
        req.current_user_id == actor.user_id
        and actor.is_member_of(req.current_department_id)
    )


def _manager_or_assignee(actor, req, dept_a_id, step):
    return _current_department_manager(actor, req, dept_a_id, step) or _assigned_employee(
        actor, req, dept_a_id, step,
    )


def _path_navigator(actor, req, dept_a_id, step):
    return actor.is_manager_of(req.current_department_id) or actor.is_manager_of(dept_a_id)


def _step_approver(actor, req, dept_a_id, step):
    if _current_department_manager(actor, req, dept_a_id, step):
        return True
    # Steps that do not require approval may be forwarded by the assignee.
    if step is not None and not step.requires_approval:
        return _assigned_employee(actor, req, dept_a_id, step)
    return False


def _department_a_evaluator(actor, req, dept_a_id, step):
    return req.current_department_id == dept_a_id and actor.is_manager_of(dept_a_id)


Predicate = Callable[..., bool]

# action → (predicate, human description of who may act)
CAPABILITIES: dict[str, tuple[Predicate, str]] = {
    "submit": (_owner, "the request owner"),
    "edit": (_owner, "the request owner"),
    "delete": (_owner, "the request owner"),
    "manage_attachments": (_owner, "the request owner"),
    "assign_path": (_department_a_manager, "a Department A manager"),
    "reject": (_triage, "a Department A manager or the current department's manager"),
    "request_more_details": (_triage, "a Department A manager or the current department's manager"),
    "assign_employee": (_current_department_manager, "the current department's manager"),
    "return_to_manager": (_assigned_employee, "the assigned employee"),
    "return_to_dept_a": (_manager_or_assignee, "the current department's manager or assigned employee"),
    "return_to_previous": (_path_navigator, "the current department's manager or a Department A manager"),
    "approve": (_step_approver, "the current department's manager"),
    "complete": (_department_a_manager, "a Department A manager"),
    "submit_evaluation": (_department_a_evaluator, "a Department A manager while Department A owns the request"),
}

# Actions an administrator may never perform on someone else's behalf.
_OWNER_ACTIONS = frozenset({"submit", "edit", "delete", "manage_attachments"})


def can(actor: Actor, action: str, req, *, department_a_id: int | None, step=None) -> bool:
    """Boolean capability check (no logging, no raising)."""
    entry = CAPABILITIES.get(action)
    if entry is None:
        return False
    if actor.is_admin and action not in _OWNER_ACTIONS:
        return False
    predicate, _ = entry
    return bool(predicate(actor, req, department_a_id, step))


def authorize(actor: Actor, action: str, req, *, department_a_id: int | None, step=None) -> None:
    """Assert the actor may perform ``action`` on ``req``.

    Raises:
        ForbiddenError: On any capability mismatch.
    """
    if can(actor, action, req, department_a_id=department_a_id, step=step):
        return

    if actor.is_admin and action not in _OWNER_ACTIONS:
        message = "Administrators cannot perform workflow actions"
    else:
        _, who = CAPABILITIES.get(action, (None, "nobody"))
        message = f"Only {who} may perform '{action}' on request {req.id}"

    logger.info(
        "Authorization denied",
        extra={"actor_id": actor.user_id, "action": action, "request_ref": req.id},
    )
    raise ForbiddenError(message, actor_id=actor.user_id, action=action)


def can_view(actor: Actor, req, *, department_a_id: int | None) -> bool:
    """Read access: admin, owner, current department members, and Department A
    members once the request has left draft."""
    if actor.is_admin or req.owner_id == actor.user_id:
        return True
    if actor.is_member_of(req.current_department_id):
        return True
    return req.status != "draft" and actor.is_member_of(department_a_id)


def ensure_can_view(actor: Actor, req, *, department_a_id: int | None) -> None:
    if not can_view(actor, req, department_a_id=department_a_id):
        raise ForbiddenError(
            f"Request {req.id} is not visible to user {actor.user_id}",
            actor_id=actor.user_id,
            action="view",
        )


def ensure_department_a_member(actor: Actor, department_a_id: int) -> None:
    if not actor.is_member_of(department_a_id):
        raise ForbiddenError(
            "Only Department A members may access the triage queue",
            actor_id=actor.user_id,
            action="list_pending",
        )


def ensure_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Administrator role required", actor_id=actor.user_id, action="admin")
