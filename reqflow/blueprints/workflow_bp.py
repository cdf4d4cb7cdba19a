"""
Department A Blueprint — triage, path assignment, validation and scoring.

Routes:
  GET  /api/v1/workflow/pending-requests                         – triage queue
  GET  /api/v1/workflow/paths                                    – active paths with steps
  POST /api/v1/workflow/requests/<rid>/assign-path               – { workflow_path_id }
  POST /api/v1/workflow/requests/<rid>/reject                    – { rejection_reason }
  POST /api/v1/workflow/requests/<rid>/request-details           – { comments? }
  POST /api/v1/workflow/requests/<rid>/complete
  POST /api/v1/workflow/requests/<rid>/return-to-previous
  GET  /api/v1/workflow/requests/<rid>/evaluation-questions      – form with current scores
  POST /api/v1/workflow/requests/<rid>/evaluation                – { evaluations: [...] }
  GET  /api/v1/workflow/requests/<rid>/score                     – composite score

Every routing POST also accepts { comments?, expected_version? }.
"""

from flask import Blueprint, jsonify

from reqflow.auth import current_actor
from reqflow.blueprints import json_body, run_action
from reqflow.services import evaluation_service, request_queries

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1/workflow")


@workflow_bp.route("/pending-requests", methods=["GET"])
def pending_requests():
    items = request_queries.list_pending_for_department_a(current_actor())
    return jsonify({"items": items, "total": len(items)})


@workflow_bp.route("/paths", methods=["GET"])
def workflow_paths():
    items = request_queries.list_workflow_paths()
    return jsonify({"items": items, "total": len(items)})


# ═════════════════════════════════════════════════════════════════════════════
# ROUTING ACTIONS
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/requests/<int:rid>/assign-path", methods=["POST"])
def assign_path(rid):
    return run_action(rid, "assign_path", "workflow_path_id")


@workflow_bp.route("/requests/<int:rid>/reject", methods=["POST"])
def reject(rid):
    return run_action(rid, "reject", "rejection_reason")


@workflow_bp.route("/requests/<int:rid>/request-details", methods=["POST"])
def request_more_details(rid):
    return run_action(rid, "request_more_details")


@workflow_bp.route("/requests/<int:rid>/complete", methods=["POST"])
def complete(rid):
    return run_action(rid, "complete")


@workflow_bp.route("/requests/<int:rid>/return-to-previous", methods=["POST"])
def return_to_previous(rid):
    return run_action(rid, "return_to_previous")


# ═════════════════════════════════════════════════════════════════════════════
# EVALUATION
# ═════════════════════════════════════════════════════════════════════════════

@workflow_bp.route("/requests/<int:rid>/evaluation-questions", methods=["GET"])
def evaluation_questions(rid):
    return jsonify(evaluation_service.evaluation_for_request(rid, current_actor()))


@workflow_bp.route("/requests/<int:rid>/evaluation", methods=["POST"])
def submit_evaluation(rid):
    """Body: { evaluations: [{question_id, score, notes?}, ...] }"""
    data = json_body()
    rows = evaluation_service.submit_evaluation(rid, current_actor(), data.get("evaluations"))
    return jsonify({
        "message": "Evaluation submitted successfully",
        "evaluations": [r.to_dict() for r in rows],
        "score": evaluation_service.composite_score(rid).to_dict(),
    })


@workflow_bp.route("/requests/<int:rid>/score", methods=["GET"])
def score(rid):
    request_queries.get_visible_request(rid, current_actor())
    return jsonify(evaluation_service.composite_score(rid).to_dict())
