"""
Routing Engine — request status state machine and department routing.

Every workflow action is one ``TransitionRule``: the statuses it is legal
from, an optional extra precondition, and a ``route`` function that
computes the new status / department / assignee as a ``RoutingOutcome``.
``perform_action`` is the only code path that mutates request routing:

    1. load the request (NotFoundError if missing / soft-deleted)
    2. resolve Department A (ConfigurationMissingError if absent)
    3. authorization gate (ForbiddenError)
    4. optimistic version check + status legality (IllegalTransitionError)
    5. rule.route(): input validation and path lookups
       (ValidationError, InvalidRoutingStateError)
    6. apply the outcome, flush (UPDATE ... WHERE version = ?), append the
       RequestTransition, commit — all in one unit of work

A lost race on step 6 surfaces as StaleDataError and is reported as
IllegalTransitionError; nothing from the losing call is persisted.

Legal transitions:

    action                from                              to
    ───────────────────── ───────────────────────────────── ──────────────────
    submit                draft, need_more_details          pending   (Dept A)
    assign_path           pending                           in_review (first step)
    reject                pending, in_review, approved      rejected
    request_more_details  pending, in_review                need_more_details
    assign_employee       in_review                         in_review (assignee set)
    return_to_manager     in_review                         in_review (assignee cleared)
    return_to_dept_a      in_review                         pending   (Dept A)
    return_to_previous    in_review                         in_review (previous step)
    approve               in_review                         in_review (next step) | approved (Dept A)
    complete              in_review, approved, pending*     completed
                          * pending only once a path was assigned

Usage:
    from reqflow.services.routing import perform_action

    result = perform_action(42, "assign_path", actor, workflow_path_id=3)
    result["message"], result["request"]["status"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.orm.exc import StaleDataError

from reqflow.core.exceptions import (
    IllegalTransitionError,
    InvalidRoutingStateError,
    ValidationError,
)
from reqflow.models import db
from reqflow.models.organization import Department, DepartmentMember, User
from reqflow.models.request import Request
from reqflow.models.workflow import WorkflowPath, WorkflowPathStep
from reqflow.services.authorization import Actor, authorize
from reqflow.services.helpers.lookups import as_int, get_active_request, get_department_a
from reqflow.services.helpers.unit_of_work import unit_of_work
from reqflow.services.request_queries import project_request
from reqflow.services.transition_recorder import record_transition

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class RoutingContext:
    """Everything a rule needs to compute its outcome."""

    request: Request
    actor: Actor
    department_a: Department
    step: WorkflowPathStep | None
    inputs: dict[str, Any]
    now: datetime


@dataclass
class RoutingOutcome:
    """Target state computed by a rule. ``fields`` holds extra column updates."""

    status: str
    department_id: int | None
    user_id: int | None
    fields: dict[str, Any] = field(default_factory=dict)
    message: str | None = None


@dataclass(frozen=True)
class TransitionRule:
    action: str
    from_statuses: frozenset[str]
    route: Callable[[RoutingContext], RoutingOutcome]
    message: str
    default_comment: str | None = None
    # Extra precondition beyond status; returns a reason string when it fails.
    guard: Callable[[Request], str | None] | None = None


# ── Path lookups ─────────────────────────────────────────────────────────────


def locate_current_step(req: Request) -> WorkflowPathStep | None:
    """The step of the request's path owned by its current department, or None."""
    if req.workflow_path_id is None or req.current_department_id is None:
        return None
    path = db.session.get(WorkflowPath, req.workflow_path_id)
    if path is None:
        return None
    return path.step_for_department(req.current_department_id)


def _require_step(ctx: RoutingContext) -> WorkflowPathStep:
    req = ctx.request
    if req.workflow_path_id is None:
        raise InvalidRoutingStateError(
            f"Request {req.id} has no workflow path assigned",
            details={"request_id": req.id},
        )
    if ctx.step is None:
        raise InvalidRoutingStateError(
            f"Department {req.current_department_id} is not a step of workflow path "
            f"{req.workflow_path_id}",
            details={
                "request_id": req.id,
                "department_id": req.current_department_id,
                "workflow_path_id": req.workflow_path_id,
            },
        )
    return ctx.step


def _text_input(ctx: RoutingContext, name: str) -> str:
    value = ctx.inputs.get(name)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", details={name: "invalid"})
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{name} is required", details={name: "required"})
    return value


# ── Rule implementations ─────────────────────────────────────────────────────


def _route_submit(ctx: RoutingContext) -> RoutingOutcome:
    return RoutingOutcome(
        status="pending",
        department_id=ctx.department_a.id,
        user_id=None,
        fields={"workflow_path_id": None, "rejection_reason": None, "submitted_at": ctx.now},
    )


def _route_assign_path(ctx: RoutingContext) -> RoutingOutcome:
    path_id = as_int(ctx.inputs.get("workflow_path_id"), "workflow_path_id")
    path = db.session.get(WorkflowPath, path_id)
    if path is None or not path.is_active:
        raise ValidationError(
            f"Workflow path {path_id} does not exist or is inactive",
            details={"workflow_path_id": "invalid"},
        )
    first = path.first_step()
    if first is None:
        raise ValidationError(
            f"Workflow path {path.code} has no steps",
            details={"workflow_path_id": "empty_path"},
        )
    return RoutingOutcome(
        status="in_review",
        department_id=first.department_id,
        user_id=None,
        fields={"workflow_path_id": path.id},
    )


def _route_reject(ctx: RoutingContext) -> RoutingOutcome:
    reason = _text_input(ctx, "rejection_reason")
    return RoutingOutcome(
        status="rejected",
        department_id=ctx.request.current_department_id,
        user_id=None,
        fields={"rejection_reason": reason},
    )


def _route_request_more_details(ctx: RoutingContext) -> RoutingOutcome:
    return RoutingOutcome(status="need_more_details", department_id=None, user_id=None)


def _route_assign_employee(ctx: RoutingContext) -> RoutingOutcome:
    req = ctx.request
    employee_id = as_int(ctx.inputs.get("employee_id"), "employee_id")
    employee = db.session.get(User, employee_id)
    membership = DepartmentMember.query.filter_by(
        department_id=req.current_department_id, user_id=employee_id,
    ).first()
    if employee is None or not employee.is_active or membership is None:
        raise ValidationError(
            f"User {employee_id} is not an active member of department {req.current_department_id}",
            details={"employee_id": "invalid"},
        )
    return RoutingOutcome(status="in_review", department_id=req.current_department_id, user_id=employee_id)


def _route_return_to_manager(ctx: RoutingContext) -> RoutingOutcome:
    return RoutingOutcome(status="in_review", department_id=ctx.request.current_department_id, user_id=None)


def _route_return_to_dept_a(ctx: RoutingContext) -> RoutingOutcome:
    return RoutingOutcome(status="pending", department_id=ctx.department_a.id, user_id=None)


def _route_return_to_previous(ctx: RoutingContext) -> RoutingOutcome:
    step = _require_step(ctx)
    previous = step.previous_step()
    if previous is None:
        raise InvalidRoutingStateError(
            f"Request {ctx.request.id} is already at the first step of its workflow path",
            details={"request_id": ctx.request.id, "step_order": step.step_order},
        )
    return RoutingOutcome(status="in_review", department_id=previous.department_id, user_id=None)


def _route_approve(ctx: RoutingContext) -> RoutingOutcome:
    step = _require_step(ctx)
    nxt = step.next_step()
    if nxt is not None:
        return RoutingOutcome(
            status="in_review",
            department_id=nxt.department_id,
            user_id=None,
            message="Request approved and forwarded to the next department",
        )
    return RoutingOutcome(
        status="approved",
        department_id=ctx.department_a.id,
        user_id=None,
        message="Final step approved; request returned to Department A for validation",
    )


def _route_complete(ctx: RoutingContext) -> RoutingOutcome:
    return RoutingOutcome(
        status="completed",
        department_id=ctx.department_a.id,
        user_id=None,
        fields={"completed_at": ctx.now},
    )


def _complete_guard(req: Request) -> str | None:
    if req.status == "pending" and req.workflow_path_id is None:
        return "request has not been routed through a workflow path yet"
    return None


TRANSITION_RULES: dict[str, TransitionRule] = {
    rule.action: rule
    for rule in (
        TransitionRule(
            action="submit",
            from_statuses=frozenset({"draft", "need_more_details"}),
            route=_route_submit,
            message="Request submitted successfully",
            default_comment="Request submitted for review",
        ),
        TransitionRule(
            action="assign_path",
            from_statuses=frozenset({"pending"}),
            route=_route_assign_path,
            message="Request assigned to workflow path successfully",
        ),
        TransitionRule(
            action="reject",
            from_statuses=frozenset({"pending", "in_review", "approved"}),
            route=_route_reject,
            message="Request rejected",
        ),
        TransitionRule(
            action="request_more_details",
            from_statuses=frozenset({"pending", "in_review"}),
            route=_route_request_more_details,
            message="More details requested from the requester",
        ),
        TransitionRule(
            action="assign_employee",
            from_statuses=frozenset({"in_review"}),
            route=_route_assign_employee,
            message="Request assigned to employee successfully",
        ),
        TransitionRule(
            action="return_to_manager",
            from_statuses=frozenset({"in_review"}),
            route=_route_return_to_manager,
            message="Request returned to department manager",
        ),
        TransitionRule(
            action="return_to_dept_a",
            from_statuses=frozenset({"in_review"}),
            route=_route_return_to_dept_a,
            message="Request returned to Department A for validation",
        ),
        TransitionRule(
            action="return_to_previous",
            from_statuses=frozenset({"in_review"}),
            route=_route_return_to_previous,
            message="Request returned to previous department",
        ),
        TransitionRule(
            action="approve",
            from_statuses=frozenset({"in_review"}),
            route=_route_approve,
            message="Request approved",
        ),
        TransitionRule(
            action="complete",
            from_statuses=frozenset({"in_review", "approved", "pending"}),
            route=_route_complete,
            message="Request completed successfully",
            guard=_complete_guard,
        ),
    )
}


def validate_transition(req: Request, action: str) -> dict:
    """
    Check whether ``action`` is legal for the request's current status.

    Returns:
        {"valid": bool, "from": str, "reason": str|None}
    """
    rule = TRANSITION_RULES.get(action)
    if rule is None:
        return {"valid": False, "from": req.status, "reason": f"Unknown action: {action}"}
    if req.status not in rule.from_statuses:
        return {"valid": False, "from": req.status,
                "reason": f"Cannot '{action}' from status '{req.status}'"}
    if rule.guard is not None:
        reason = rule.guard(req)
        if reason:
            return {"valid": False, "from": req.status, "reason": reason}
    return {"valid": True, "from": req.status, "reason": None}


def available_actions(req: Request) -> list[str]:
    """Action names legal for the request's current status (ignores who is asking)."""
    return [action for action in TRANSITION_RULES if validate_transition(req, action)["valid"]]


def perform_action(
    request_id: int,
    action: str,
    actor: Actor,
    *,
    expected_version: int | None = None,
    comments: str | None = None,
    **inputs,
) -> dict:
    """
    Execute one workflow action atomically.

    Args:
        request_id:       Target request.
        action:           Key of TRANSITION_RULES.
        actor:            Authenticated caller.
        expected_version: Version the caller last saw; a mismatch is an
                          IllegalTransitionError.
        comments:         Free text stored on the transition record.
        **inputs:         Action inputs (workflow_path_id, employee_id,
                          rejection_reason).

    Returns:
        {"message": str, "request": projection}

    Raises:
        NotFoundError, ConfigurationMissingError, ForbiddenError,
        IllegalTransitionError, ValidationError, InvalidRoutingStateError
    """
    rule = TRANSITION_RULES.get(action)
    if rule is None:
        raise ValidationError(f"Unknown workflow action: {action}", details={"action": "invalid"})

    from_status = None
    try:
        with unit_of_work():
            req = get_active_request(request_id)
            dept_a = get_department_a()
            step = locate_current_step(req)

            authorize(actor, action, req, department_a_id=dept_a.id, step=step)

            from_status = req.status
            from_department_id = req.current_department_id

            if expected_version is not None and expected_version != req.version:
                raise IllegalTransitionError(
                    action, from_status,
                    f"request was modified concurrently (expected version {expected_version}, "
                    f"found {req.version})",
                )
            check = validate_transition(req, action)
            if not check["valid"]:
                raise IllegalTransitionError(action, from_status, check["reason"])

            now = datetime.now(timezone.utc)
            outcome = rule.route(RoutingContext(
                request=req, actor=actor, department_a=dept_a, step=step, inputs=inputs, now=now,
            ))

            req.status = outcome.status
            req.current_department_id = outcome.department_id
            req.current_user_id = outcome.user_id
            for name, value in outcome.fields.items():
                setattr(req, name, value)

            # Compare-and-swap on the version column happens here.
            db.session.flush()

            record_transition(
                req,
                action=action,
                actor_id=actor.user_id,
                from_status=from_status,
                from_department_id=from_department_id,
                comments=comments if comments is not None else rule.default_comment,
            )
    except StaleDataError as exc:
        logger.warning(
            "Concurrent modification detected",
            extra={"request_ref": request_id, "action": action, "actor_id": actor.user_id},
        )
        raise IllegalTransitionError(
            action, from_status or "unknown", "request was modified concurrently",
        ) from exc

    logger.info(
        "Request %s: %s (%s → %s)", req.id, action, from_status, req.status,
        extra={"request_ref": req.id, "action": action, "actor_id": actor.user_id},
    )
    return {"message": outcome.message or rule.message, "request": project_request(req)}
