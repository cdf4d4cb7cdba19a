"""
HTTP surface of the workflow — Department A, department and admin endpoints.

Tests cover:
    - Full lifecycle through the API with the audit trail
    - Error mapping: 400 / 401 / 403 / 404 / 422 / 500
    - Department queues, employee lists, evaluation endpoints
    - Admin oversight and scorecard management
"""

import pytest

from reqflow.models import db
from reqflow.models.organization import Department


def _post(client, url, headers, body=None):
    return client.post(url, json=body if body is not None else {}, headers=headers)


# ═════════════════════════════════════════════════════════════════════════
# LIFECYCLE
# ═════════════════════════════════════════════════════════════════════════

class TestLifecycle:
    def test_submit_route_and_return_with_history(self, client, org, headers_for):
        res = client.post(
            "/api/v1/requests",
            json={"title": "Standing desk", "description": "Back pain"},
            headers=headers_for("requester"),
        )
        assert res.status_code == 201
        rid = res.get_json()["request"]["id"]

        res = _post(client, f"/api/v1/requests/{rid}/submit", headers_for("requester"))
        assert res.status_code == 200
        assert res.get_json()["message"] == "Request submitted successfully"

        queue = client.get("/api/v1/workflow/pending-requests", headers=headers_for("manager_a")).get_json()
        assert [r["id"] for r in queue["items"]] == [rid]

        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/assign-path", headers_for("manager_a"),
            {"workflow_path_id": org["paths"]["PATH_1"]},
        )
        assert res.status_code == 200
        body = res.get_json()
        assert body["request"]["status"] == "in_review"
        assert body["request"]["current_department"]["code"] == "TECH"

        res = _post(
            client, f"/api/v1/department/requests/{rid}/assign-employee", headers_for("manager_tech"),
            {"employee_id": org["users"]["employee_tech_1"]},
        )
        assert res.status_code == 200
        assert res.get_json()["request"]["current_user"]["id"] == org["users"]["employee_tech_1"]

        res = _post(
            client, f"/api/v1/department/requests/{rid}/return-to-dept-a", headers_for("employee_tech_1"),
            {"comments": "Delivered"},
        )
        assert res.status_code == 200
        returned = res.get_json()["request"]
        assert returned["status"] == "pending"
        assert returned["current_department_id"] == org["departments"]["DEPT_A"]
        assert returned["current_user_id"] is None

        history = client.get(f"/api/v1/requests/{rid}/transitions", headers=headers_for("requester")).get_json()
        assert history["total"] == 4
        assert [t["action"] for t in history["items"]] == [
            "submit", "assign_path", "assign_employee", "return_to_dept_a",
        ]
        assert history["items"][-1]["comments"] == "Delivered"

    def test_approve_through_path_then_score_and_complete(self, client, org, headers_for, make_request):
        rid = make_request("in_review")

        res = _post(client, f"/api/v1/department/requests/{rid}/approve", headers_for("manager_tech"))
        assert res.get_json()["message"] == "Request approved and forwarded to the next department"
        res = _post(client, f"/api/v1/department/requests/{rid}/approve", headers_for("manager_ops"))
        assert res.get_json()["request"]["status"] == "approved"

        form = client.get(
            f"/api/v1/workflow/requests/{rid}/evaluation-questions", headers=headers_for("manager_a"),
        ).get_json()
        answers = [
            {"question_id": q["id"], "score": s}
            for q, s in zip(form["questions"], [80, 90, 70])
        ]
        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/evaluation", headers_for("manager_a"),
            {"evaluations": answers},
        )
        assert res.status_code == 200
        assert res.get_json()["score"]["score"] == 81.0

        score = client.get(f"/api/v1/workflow/requests/{rid}/score", headers=headers_for("requester")).get_json()
        assert score["status"] == "complete"

        res = _post(client, f"/api/v1/workflow/requests/{rid}/complete", headers_for("manager_a"))
        assert res.status_code == 200
        assert res.get_json()["request"]["status"] == "completed"
        assert res.get_json()["request"]["available_actions"] == []

    def test_request_details_then_resubmit(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/request-details", headers_for("manager_a"),
            {"comments": "Which model?"},
        )
        assert res.get_json()["request"]["status"] == "need_more_details"

        res = client.put(
            f"/api/v1/requests/{rid}", json={"additional_details": "14in model"},
            headers=headers_for("requester"),
        )
        assert res.status_code == 200
        res = _post(client, f"/api/v1/requests/{rid}/submit", headers_for("requester"))
        assert res.get_json()["request"]["status"] == "pending"

    def test_return_to_previous(self, client, org, headers_for, make_request):
        rid = make_request("in_review")
        _post(client, f"/api/v1/department/requests/{rid}/approve", headers_for("manager_tech"))
        res = _post(client, f"/api/v1/workflow/requests/{rid}/return-to-previous", headers_for("manager_ops"))
        assert res.status_code == 200
        assert res.get_json()["request"]["current_department_id"] == org["departments"]["TECH"]


# ═════════════════════════════════════════════════════════════════════════
# ERROR MAPPING
# ═════════════════════════════════════════════════════════════════════════

class TestErrorMapping:
    def test_missing_identity_is_401(self, client, org):
        res = client.get("/api/v1/workflow/pending-requests")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_wrong_actor_is_403(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/assign-path", headers_for("manager_tech"),
            {"workflow_path_id": org["paths"]["PATH_1"]},
        )
        assert res.status_code == 403
        assert res.get_json()["kind"] == "forbidden"

    def test_unknown_request_is_404(self, client, org, headers_for):
        res = _post(
            client, "/api/v1/workflow/requests/9999/reject", headers_for("manager_a"),
            {"rejection_reason": "No"},
        )
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_missing_reason_is_422(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        res = _post(client, f"/api/v1/workflow/requests/{rid}/reject", headers_for("manager_a"))
        assert res.status_code == 422
        body = res.get_json()
        assert body["kind"] == "validation_failed"
        assert body["details"] == {"rejection_reason": "required"}

    def test_illegal_transition_is_422(self, client, org, headers_for, make_request):
        rid = make_request("completed")
        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/reject", headers_for("manager_a"),
            {"rejection_reason": "Too late"},
        )
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_ILLEGAL_TRANSITION"

    def test_stale_expected_version_is_422(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/assign-path", headers_for("manager_a"),
            {"workflow_path_id": org["paths"]["PATH_1"], "expected_version": 1},
        )
        assert res.status_code == 422
        assert res.get_json()["kind"] == "illegal_transition"

    @pytest.mark.parametrize("body", [{"expected_version": "2"}, {"comments": 5}])
    def test_malformed_transport_fields_are_400(self, client, org, headers_for, make_request, body):
        rid = make_request("pending")
        res = _post(client, f"/api/v1/workflow/requests/{rid}/request-details", headers_for("manager_a"), body)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_non_object_body_is_400(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        res = client.post(
            f"/api/v1/workflow/requests/{rid}/reject", json=["nope"], headers=headers_for("manager_a"),
        )
        assert res.status_code == 400

    def test_non_json_body_is_415(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        res = client.post(
            f"/api/v1/workflow/requests/{rid}/reject", data="reason=no",
            content_type="text/plain", headers=headers_for("manager_a"),
        )
        assert res.status_code == 415

    def test_missing_department_a_is_500(self, client, org, headers_for, make_request):
        rid = make_request("draft")
        db.session.get(Department, org["departments"]["DEPT_A"]).is_department_a = False
        db.session.commit()

        res = _post(client, f"/api/v1/requests/{rid}/submit", headers_for("requester"))
        assert res.status_code == 500
        body = res.get_json()
        assert body["code"] == "ERR_CONFIGURATION_MISSING"
        assert body["error"] == "Department A not found. Please contact administrator."

    def test_invalid_path_is_422(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/assign-path", headers_for("manager_a"),
            {"workflow_path_id": 4242},
        )
        assert res.status_code == 422
        assert res.get_json()["details"] == {"workflow_path_id": "invalid"}


# ═════════════════════════════════════════════════════════════════════════
# QUEUES & LISTS
# ═════════════════════════════════════════════════════════════════════════

class TestQueues:
    def test_pending_queue_restricted_to_department_a(self, client, org, headers_for, make_request):
        make_request("pending")
        assert client.get("/api/v1/workflow/pending-requests", headers=headers_for("employee_a")).status_code == 200
        assert client.get("/api/v1/workflow/pending-requests", headers=headers_for("manager_tech")).status_code == 403

    def test_paths_listing(self, client, org, headers_for):
        body = client.get("/api/v1/workflow/paths", headers=headers_for("manager_a")).get_json()
        by_code = {p["code"]: p for p in body["items"]}
        assert set(by_code) == {"PATH_1", "PATH_2"}
        assert [s["department_id"] for s in by_code["PATH_1"]["steps"]] == [
            org["departments"]["TECH"], org["departments"]["OPS"],
        ]

    def test_department_requests_for_manager_and_employee(self, client, org, headers_for, make_request, actor_of):
        from reqflow.services.routing import perform_action

        mine = make_request("in_review")
        other = make_request("in_review", title="Monitor")
        perform_action(mine, "assign_employee", actor_of("manager_tech"), employee_id=org["users"]["employee_tech_1"])

        managed = client.get("/api/v1/department/requests", headers=headers_for("manager_tech")).get_json()
        assert {r["id"] for r in managed["items"]} == {mine, other}

        assigned = client.get("/api/v1/department/requests", headers=headers_for("employee_tech_1")).get_json()
        assert [r["id"] for r in assigned["items"]] == [mine]

        filtered = client.get(
            "/api/v1/department/requests?status=approved", headers=headers_for("manager_tech"),
        ).get_json()
        assert filtered["total"] == 0

    def test_department_requests_bad_status(self, client, org, headers_for):
        res = client.get("/api/v1/department/requests?status=bogus", headers=headers_for("manager_tech"))
        assert res.status_code == 400

    def test_department_requests_need_membership(self, client, org, headers_for):
        assert client.get("/api/v1/department/requests", headers=headers_for("requester")).status_code == 403

    def test_employee_listing(self, client, org, headers_for):
        body = client.get("/api/v1/department/employees", headers=headers_for("manager_tech")).get_json()
        assert {e["user_id"] for e in body["items"]} == {
            org["users"]["employee_tech_1"], org["users"]["employee_tech_2"],
        }
        assert client.get("/api/v1/department/employees", headers=headers_for("employee_ops")).status_code == 403


# ═════════════════════════════════════════════════════════════════════════
# ADMIN
# ═════════════════════════════════════════════════════════════════════════

class TestAdmin:
    def test_non_admin_refused(self, client, org, headers_for):
        res = client.get("/api/v1/admin/requests", headers=headers_for("manager_a"))
        assert res.status_code == 403

    def test_admin_lists_and_paginates(self, client, org, headers_for, make_request):
        make_request("draft")
        make_request("pending")
        deleted = make_request("draft", title="Throwaway")
        client.delete(f"/api/v1/requests/{deleted}", headers=headers_for("requester"))

        body = client.get("/api/v1/admin/requests?limit=1", headers=headers_for("admin")).get_json()
        assert body["total"] == 2
        assert len(body["items"]) == 1

        body = client.get("/api/v1/admin/requests?include_deleted=true", headers=headers_for("admin")).get_json()
        assert body["total"] == 3

        body = client.get("/api/v1/admin/requests?status=pending", headers=headers_for("admin")).get_json()
        assert [r["status"] for r in body["items"]] == ["pending"]

    def test_admin_reads_detail_but_cannot_route(self, client, org, headers_for, make_request):
        rid = make_request("pending")
        detail = client.get(f"/api/v1/admin/requests/{rid}", headers=headers_for("admin")).get_json()
        assert [t["action"] for t in detail["transitions"]] == ["submit"]

        res = _post(
            client, f"/api/v1/workflow/requests/{rid}/assign-path", headers_for("admin"),
            {"workflow_path_id": org["paths"]["PATH_1"]},
        )
        assert res.status_code == 403
        assert res.get_json()["error"] == "Administrators cannot perform workflow actions"

    def test_question_management(self, client, org, headers_for):
        admin = headers_for("admin")

        res = client.post(
            "/api/v1/admin/evaluation-questions", json={"question": "Extra", "weight": 5}, headers=admin,
        )
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_WEIGHT_OVERFLOW"

        res = client.delete(f"/api/v1/admin/evaluation-questions/{org['questions'][2]}", headers=admin)
        assert res.status_code == 200
        assert res.get_json()["weights"]["remaining"] == "25.00"

        res = client.post(
            "/api/v1/admin/evaluation-questions",
            json={"question": "Extra", "weight": "5.50", "display_order": 4}, headers=admin,
        )
        assert res.status_code == 201
        qid = res.get_json()["question"]["id"]

        res = client.put(f"/api/v1/admin/evaluation-questions/{qid}", json={"weight": 25}, headers=admin)
        assert res.status_code == 200
        assert res.get_json()["weights"]["is_complete"] is True

        res = client.put(f"/api/v1/admin/evaluation-questions/{qid}", json={}, headers=admin)
        assert res.status_code == 400

        listing = client.get("/api/v1/admin/evaluation-questions?active_only=true", headers=admin).get_json()
        assert listing["total"] == 3
        total = client.get("/api/v1/admin/evaluation-weight-total", headers=admin).get_json()
        assert total["total"] == "100.00"

    @pytest.mark.parametrize("flag", ["false", 0, None])
    def test_non_boolean_is_active_is_400(self, client, org, headers_for, flag):
        admin = headers_for("admin")
        deactivated = org["questions"][2]
        client.delete(f"/api/v1/admin/evaluation-questions/{deactivated}", headers=admin)

        res = client.post(
            "/api/v1/admin/evaluation-questions",
            json={"question": "Extra", "weight": 5, "is_active": flag}, headers=admin,
        )
        assert res.status_code == 400
        res = client.put(
            f"/api/v1/admin/evaluation-questions/{deactivated}", json={"is_active": flag}, headers=admin,
        )
        assert res.status_code == 400

        total = client.get("/api/v1/admin/evaluation-weight-total", headers=admin).get_json()
        assert total["total"] == "75.00"

    def test_unknown_question_is_404(self, client, org, headers_for):
        res = client.delete("/api/v1/admin/evaluation-questions/999", headers=headers_for("admin"))
        assert res.status_code == 404
