"""
Admin Blueprint — read-only request oversight and the evaluation scorecard.

Routes:
  GET    /api/v1/admin/requests?status=&include_deleted=&limit=&offset=
  GET    /api/v1/admin/requests/<rid>
  GET    /api/v1/admin/evaluation-questions?active_only=
  POST   /api/v1/admin/evaluation-questions          – { question, weight, display_order?, is_active? }
  PUT    /api/v1/admin/evaluation-questions/<qid>
  DELETE /api/v1/admin/evaluation-questions/<qid>    – deactivate
  GET    /api/v1/admin/evaluation-weight-total

Administrators never route requests; workflow actions are refused by the
authorization gate.
"""

import logging

from flask import Blueprint, jsonify, request

from reqflow.auth import current_actor
from reqflow.blueprints import json_body, paginate_query
from reqflow.services import evaluation_service, request_queries
from reqflow.services.authorization import ensure_admin
from reqflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")

QUESTION_FIELDS = ("question", "weight", "display_order", "is_active")


@admin_bp.before_request
def _require_admin():
    # g.actor is already resolved (or the call rejected) by the auth middleware
    ensure_admin(current_actor())


# ═════════════════════════════════════════════════════════════════════════════
# REQUESTS
# ═════════════════════════════════════════════════════════════════════════════

@admin_bp.route("/requests", methods=["GET"])
def list_requests():
    include_deleted = request.args.get("include_deleted", "false").lower() == "true"
    query = request_queries.admin_requests_query(
        current_actor(), status=request.args.get("status"), include_deleted=include_deleted,
    )
    items, total = paginate_query(query, default_limit=50, max_limit=500)
    return jsonify({
        "items": [request_queries.project_request(r) for r in items],
        "total": total,
    })


@admin_bp.route("/requests/<int:rid>", methods=["GET"])
def get_request(rid):
    return jsonify(request_queries.get_request_detail(rid, current_actor()))


# ═════════════════════════════════════════════════════════════════════════════
# EVALUATION QUESTIONS
# ═════════════════════════════════════════════════════════════════════════════

@admin_bp.route("/evaluation-questions", methods=["GET"])
def list_questions():
    active_only = request.args.get("active_only", "false").lower() == "true"
    rows = evaluation_service.list_questions(active_only=active_only)
    return jsonify({
        "items": [q.to_dict() for q in rows],
        "total": len(rows),
        "weights": evaluation_service.weight_total(),
    })


@admin_bp.route("/evaluation-questions", methods=["POST"])
def create_question():
    data = json_body()
    display_order = data.get("display_order", 0)
    if isinstance(display_order, bool) or not isinstance(display_order, int):
        return api_error(E.VALIDATION_INVALID, "display_order must be an integer")
    is_active = data.get("is_active", True)
    if not isinstance(is_active, bool):
        return api_error(E.VALIDATION_INVALID, "is_active must be a boolean")
    row = evaluation_service.create_question(
        data.get("question"),
        data.get("weight"),
        display_order=display_order,
        is_active=is_active,
    )
    return jsonify({
        "message": "Evaluation question created successfully",
        "question": row.to_dict(),
        "weights": evaluation_service.weight_total(),
    }), 201


@admin_bp.route("/evaluation-questions/<int:qid>", methods=["PUT"])
def update_question(qid):
    data = json_body()
    fields = {k: data[k] for k in QUESTION_FIELDS if k in data}
    if not fields:
        return api_error(
            E.VALIDATION_REQUIRED, f"Provide at least one of: {', '.join(QUESTION_FIELDS)}",
        )
    if "is_active" in fields and not isinstance(fields["is_active"], bool):
        return api_error(E.VALIDATION_INVALID, "is_active must be a boolean")
    row = evaluation_service.update_question(qid, **fields)
    return jsonify({
        "message": "Evaluation question updated successfully",
        "question": row.to_dict(),
        "weights": evaluation_service.weight_total(),
    })


@admin_bp.route("/evaluation-questions/<int:qid>", methods=["DELETE"])
def deactivate_question(qid):
    row = evaluation_service.deactivate_question(qid)
    return jsonify({
        "message": "Evaluation question deactivated",
        "question": row.to_dict(),
        "weights": evaluation_service.weight_total(),
    })


@admin_bp.route("/evaluation-weight-total", methods=["GET"])
def weight_total():
    return jsonify(evaluation_service.weight_total())
