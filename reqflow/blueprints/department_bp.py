"""
Department Blueprint — managers and employees working a path step.

Routes:
  GET  /api/v1/department/requests?status=                      – requests at my departments
  GET  /api/v1/department/employees                             – employees I manage
  POST /api/v1/department/requests/<rid>/assign-employee        – { employee_id }
  POST /api/v1/department/requests/<rid>/return-to-manager
  POST /api/v1/department/requests/<rid>/return-to-dept-a
  POST /api/v1/department/requests/<rid>/approve                – forward to next step
"""

from flask import Blueprint, jsonify, request

from reqflow.auth import current_actor
from reqflow.blueprints import run_action
from reqflow.models.request import REQUEST_STATUSES
from reqflow.services import request_queries
from reqflow.utils.errors import E, api_error

department_bp = Blueprint("department", __name__, url_prefix="/api/v1/department")


@department_bp.route("/requests", methods=["GET"])
def department_requests():
    status = request.args.get("status")
    if status and status not in REQUEST_STATUSES:
        return api_error(
            E.VALIDATION_INVALID, f"status must be one of: {', '.join(REQUEST_STATUSES)}",
        )
    items = request_queries.list_requests_for_department(current_actor(), status)
    return jsonify({"items": items, "total": len(items)})


@department_bp.route("/employees", methods=["GET"])
def department_employees():
    items = request_queries.list_department_employees(current_actor())
    return jsonify({"items": items, "total": len(items)})


@department_bp.route("/requests/<int:rid>/assign-employee", methods=["POST"])
def assign_employee(rid):
    return run_action(rid, "assign_employee", "employee_id")


@department_bp.route("/requests/<int:rid>/return-to-manager", methods=["POST"])
def return_to_manager(rid):
    return run_action(rid, "return_to_manager")


@department_bp.route("/requests/<int:rid>/return-to-dept-a", methods=["POST"])
def return_to_dept_a(rid):
    return run_action(rid, "return_to_dept_a")


@department_bp.route("/requests/<int:rid>/approve", methods=["POST"])
def approve(rid):
    return run_action(rid, "approve")
