"""
Authorization gate — capability matrix and read visibility.
"""

import pytest

from reqflow.core.exceptions import ForbiddenError
from reqflow.models import db
from reqflow.models.request import Request
from reqflow.services.authorization import Actor, authorize, can, can_view, load_actor
from reqflow.services.routing import locate_current_step, perform_action


def _can(actor, action, request_id, org):
    req = db.session.get(Request, request_id)
    return can(
        actor, action, req,
        department_a_id=org["departments"]["DEPT_A"], step=locate_current_step(req),
    )


# ═════════════════════════════════════════════════════════════════════════
# CAPABILITY MATRIX
# ═════════════════════════════════════════════════════════════════════════

# (action, request status, user key, allowed)
MATRIX = [
    ("submit", "draft", "requester", True),
    ("submit", "draft", "manager_a", False),
    ("edit", "draft", "requester", True),
    ("edit", "draft", "employee_tech_1", False),
    ("delete", "draft", "requester", True),
    ("manage_attachments", "draft", "requester", True),
    ("manage_attachments", "draft", "manager_a", False),
    ("assign_path", "pending", "manager_a", True),
    ("assign_path", "pending", "employee_a", False),
    ("assign_path", "pending", "manager_tech", False),
    ("reject", "pending", "manager_a", True),
    ("reject", "pending", "manager_tech", False),
    ("reject", "in_review", "manager_tech", True),
    ("reject", "in_review", "manager_ops", False),
    ("request_more_details", "in_review", "manager_tech", True),
    ("request_more_details", "in_review", "employee_tech_1", False),
    ("assign_employee", "in_review", "manager_tech", True),
    ("assign_employee", "in_review", "manager_a", False),
    ("assign_employee", "in_review", "employee_tech_1", False),
    ("return_to_dept_a", "in_review", "manager_tech", True),
    ("return_to_dept_a", "in_review", "manager_ops", False),
    ("return_to_previous", "in_review", "manager_tech", True),
    ("return_to_previous", "in_review", "manager_a", True),
    ("return_to_previous", "in_review", "employee_tech_1", False),
    ("approve", "in_review", "manager_tech", True),
    ("approve", "in_review", "manager_a", False),
    ("complete", "approved", "manager_a", True),
    ("complete", "approved", "employee_a", False),
    ("submit_evaluation", "approved", "manager_a", True),
    ("submit_evaluation", "in_review", "manager_a", False),
    ("submit_evaluation", "approved", "manager_tech", False),
]


@pytest.mark.parametrize("action,status,user_key,allowed", MATRIX)
def test_capability_matrix(org, make_request, actor_of, action, status, user_key, allowed):
    rid = make_request(status)
    assert _can(actor_of(user_key), action, rid, org) is allowed


def test_employee_acts_only_on_own_assignment(org, make_request, actor_of):
    rid = make_request("in_review")
    perform_action(rid, "assign_employee", actor_of("manager_tech"), employee_id=org["users"]["employee_tech_1"])

    assert _can(actor_of("employee_tech_1"), "return_to_manager", rid, org) is True
    assert _can(actor_of("employee_tech_2"), "return_to_manager", rid, org) is False
    assert _can(actor_of("employee_tech_1"), "return_to_dept_a", rid, org) is True
    assert _can(actor_of("employee_tech_2"), "return_to_dept_a", rid, org) is False


def test_unknown_action_is_denied(org, make_request, actor_of):
    rid = make_request("pending")
    assert _can(actor_of("manager_a"), "teleport", rid, org) is False


# ═════════════════════════════════════════════════════════════════════════
# ADMIN
# ═════════════════════════════════════════════════════════════════════════

class TestAdmin:
    @pytest.mark.parametrize("action", ["assign_path", "reject", "request_more_details", "complete"])
    def test_admin_never_routes(self, org, make_request, actor_of, action):
        rid = make_request("pending")
        req = db.session.get(Request, rid)
        with pytest.raises(ForbiddenError) as exc:
            authorize(actor_of("admin"), action, req, department_a_id=org["departments"]["DEPT_A"])
        assert "Administrators" in str(exc.value)
        assert exc.value.action == action

    def test_admin_with_department_membership_still_cannot_route(self, org, make_request):
        rid = make_request("pending")
        req = db.session.get(Request, rid)
        dept_a = org["departments"]["DEPT_A"]
        admin = Actor(user_id=org["users"]["admin"], role="admin", memberships={dept_a: "manager"})
        assert can(admin, "assign_path", req, department_a_id=dept_a) is False

    def test_admin_sees_everything(self, org, make_request, actor_of):
        rid = make_request("draft")
        req = db.session.get(Request, rid)
        assert can_view(actor_of("admin"), req, department_a_id=org["departments"]["DEPT_A"])


# ═════════════════════════════════════════════════════════════════════════
# READ VISIBILITY
# ═════════════════════════════════════════════════════════════════════════

class TestVisibility:
    def test_draft_visible_only_to_owner(self, org, make_request, actor_of):
        req = db.session.get(Request, make_request("draft"))
        dept_a = org["departments"]["DEPT_A"]
        assert can_view(actor_of("requester"), req, department_a_id=dept_a)
        assert not can_view(actor_of("manager_a"), req, department_a_id=dept_a)

    def test_department_a_sees_submitted_requests(self, org, make_request, actor_of):
        req = db.session.get(Request, make_request("in_review"))
        dept_a = org["departments"]["DEPT_A"]
        assert can_view(actor_of("employee_a"), req, department_a_id=dept_a)
        assert can_view(actor_of("employee_tech_2"), req, department_a_id=dept_a)
        assert not can_view(actor_of("employee_ops"), req, department_a_id=dept_a)


def test_load_actor_resolves_memberships(org):
    actor = load_actor(org["users"]["manager_tech"])
    assert actor.memberships == {org["departments"]["TECH"]: "manager"}
    assert actor.is_manager_of(org["departments"]["TECH"])
    assert actor.managed_department_ids() == [org["departments"]["TECH"]]


@pytest.mark.parametrize("user_id", [None, "abc", 99999])
def test_load_actor_unknown(org, user_id):
    assert load_actor(user_id) is None


def test_load_actor_inactive_user(org):
    from reqflow.models.organization import User
    db.session.get(User, org["users"]["requester"]).is_active = False
    db.session.commit()
    assert load_actor(org["users"]["requester"]) is None
