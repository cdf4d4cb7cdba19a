"""
Transition recorder — append-only audit trail.

Tests cover:
    - Chronological history with resolved names
    - One record per successful routing action, none for failures
    - Request mutation and audit row commit together or not at all
    - Existing records refuse updates
"""

import pytest

from reqflow.core.exceptions import ForbiddenError, ValidationError
from reqflow.models import db
from reqflow.models.request import TRANSITION_ACTIONS, Request, RequestTransition
from reqflow.services import routing
from reqflow.services.transition_recorder import count_transitions, get_history, record_transition


def test_history_is_chronological_with_names(org, make_request, actor_of):
    rid = make_request("approved")

    history = get_history(rid)
    assert [t.action for t in history] == ["submit", "assign_path", "approve", "approve"]
    assert [t.to_status for t in history] == ["pending", "in_review", "in_review", "approved"]

    first, last = history[0].to_dict(), history[-1].to_dict()
    assert first["from_status"] == "draft"
    assert first["from_department_id"] is None
    assert first["to_department_name"] == "Department A"
    assert first["actioned_by_name"] == "Regular User"
    assert first["comments"] == "Request submitted for review"
    assert last["from_department_name"] == "Operations"
    assert last["to_department_name"] == "Department A"


def test_only_successful_actions_are_recorded(org, make_request, actor_of):
    rid = make_request("pending")
    assert count_transitions(rid) == 1

    with pytest.raises(ForbiddenError):
        routing.perform_action(rid, "assign_path", actor_of("employee_a"), workflow_path_id=org["paths"]["PATH_1"])
    with pytest.raises(ValidationError):
        routing.perform_action(rid, "reject", actor_of("manager_a"), rejection_reason="")

    assert count_transitions(rid) == 1


def test_comments_are_trimmed_and_blank_is_null(org, make_request, actor_of):
    rid = make_request("in_review")
    routing.perform_action(
        rid, "assign_employee", actor_of("manager_tech"),
        employee_id=org["users"]["employee_tech_1"], comments="   ",
    )
    routing.perform_action(rid, "return_to_manager", actor_of("employee_tech_1"), comments="  needs a quote  ")

    history = get_history(rid)
    assert history[-2].comments is None
    assert history[-1].comments == "needs a quote"


def test_mutation_rolls_back_when_recording_fails(org, make_request, actor_of, monkeypatch):
    rid = make_request("pending")

    def _broken(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(routing, "record_transition", _broken)
    with pytest.raises(RuntimeError):
        routing.perform_action(rid, "assign_path", actor_of("manager_a"), workflow_path_id=org["paths"]["PATH_1"])

    req = db.session.get(Request, rid)
    assert req.status == "pending"
    assert req.workflow_path_id is None
    assert req.version == 2
    assert count_transitions(rid) == 1


def test_transition_records_refuse_updates(org, make_request):
    rid = make_request("pending")
    record = RequestTransition.query.filter_by(request_id=rid).one()

    record.comments = "rewritten"
    with pytest.raises(RuntimeError, match="append-only"):
        db.session.flush()
    db.session.rollback()

    assert db.session.get(RequestTransition, record.id).comments == "Request submitted for review"


def test_unknown_action_cannot_be_recorded(org, make_request, actor_of):
    rid = make_request("pending")
    req = db.session.get(Request, rid)

    record_transition(
        req, action="teleport", actor_id=actor_of("manager_a").user_id,
        from_status=req.status, from_department_id=req.current_department_id,
    )
    with pytest.raises(ValueError, match="teleport"):
        db.session.flush()
    db.session.rollback()

    assert count_transitions(rid) == 1


def test_every_routing_action_is_recordable():
    assert set(routing.TRANSITION_RULES) == TRANSITION_ACTIONS
