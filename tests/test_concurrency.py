"""
Optimistic concurrency on request routing.

Two actors racing on the same request must never both succeed, and the
loser leaves no trace (no mutation, no transition record).
"""

import pytest
import sqlalchemy as sa

from reqflow.core.exceptions import IllegalTransitionError
from reqflow.models import db
from reqflow.models.request import Request
from reqflow.services.routing import perform_action
from reqflow.services.transition_recorder import count_transitions


def test_stale_snapshot_loses_the_race(org, make_request, actor_of):
    rid = make_request("pending")
    req = db.session.get(Request, rid)
    assert req.version == 2

    # Another writer moves the row on underneath the loaded snapshot.
    db.session.execute(
        sa.update(Request.__table__)
        .where(Request.__table__.c.id == rid)
        .values(status="rejected", version=3, rejection_reason="Duplicate")
    )

    with pytest.raises(IllegalTransitionError) as exc:
        perform_action(rid, "assign_path", actor_of("manager_a"), workflow_path_id=org["paths"]["PATH_1"])
    assert "concurrently" in str(exc.value)

    db.session.expire_all()
    req = db.session.get(Request, rid)
    assert req.status == "pending"
    assert req.workflow_path_id is None
    assert count_transitions(rid) == 1


def test_expected_version_mismatch_is_rejected(org, make_request, actor_of):
    rid = make_request("pending")
    seen_version = db.session.get(Request, rid).version

    perform_action(
        rid, "reject", actor_of("manager_a"),
        expected_version=seen_version, rejection_reason="Out of scope",
    )
    with pytest.raises(IllegalTransitionError) as exc:
        perform_action(
            rid, "assign_path", actor_of("manager_a"),
            expected_version=seen_version, workflow_path_id=org["paths"]["PATH_1"],
        )
    assert exc.value.details == {"action": "assign_path", "status": "rejected"}

    req = db.session.get(Request, rid)
    assert req.status == "rejected"
    assert req.version == seen_version + 1
    assert count_transitions(rid) == 2


def test_matching_expected_version_succeeds(org, make_request, actor_of):
    rid = make_request("pending")
    version = db.session.get(Request, rid).version

    result = perform_action(
        rid, "assign_path", actor_of("manager_a"),
        expected_version=version, workflow_path_id=org["paths"]["PATH_1"],
    )
    assert result["request"]["version"] == version + 1
    assert result["request"]["status"] == "in_review"


def test_each_action_bumps_version_once(org, make_request, actor_of):
    rid = make_request("draft")
    assert db.session.get(Request, rid).version == 1
    perform_action(rid, "submit", actor_of("requester"))
    assert db.session.get(Request, rid).version == 2
