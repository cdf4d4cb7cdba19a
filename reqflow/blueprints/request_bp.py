"""
Requester Blueprint — the owner's side of a request.

Routes:
  GET    /api/v1/requests                               – my requests
  POST   /api/v1/requests                               – create draft
  GET    /api/v1/requests/<rid>                         – detail with history
  PUT    /api/v1/requests/<rid>                         – edit (draft / need_more_details)
  DELETE /api/v1/requests/<rid>                         – soft delete (draft)
  POST   /api/v1/requests/<rid>/submit                  – submit to Department A
  POST   /api/v1/requests/<rid>/attachments             – upload (multipart, field "file")
  DELETE /api/v1/requests/<rid>/attachments/<aid>       – remove attachment
  GET    /api/v1/requests/<rid>/transitions             – audit trail
"""

import logging

from flask import Blueprint, jsonify, request

from reqflow.auth import current_actor
from reqflow.blueprints import json_body, run_action
from reqflow.services import request_queries, request_service
from reqflow.services.request_service import EDITABLE_FIELDS
from reqflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

request_bp = Blueprint("requests", __name__, url_prefix="/api/v1/requests")


@request_bp.route("", methods=["GET"])
def list_my_requests():
    items = request_queries.list_requests_for_owner(current_actor())
    return jsonify({"items": items, "total": len(items)})


@request_bp.route("", methods=["POST"])
def create_request():
    """Create a draft. Body: { title, description, additional_details? }"""
    data = json_body()
    result = request_service.create_request(
        current_actor(),
        data.get("title"),
        data.get("description"),
        data.get("additional_details"),
    )
    return jsonify(result), 201


@request_bp.route("/<int:rid>", methods=["GET"])
def get_request(rid):
    return jsonify(request_queries.get_request_detail(rid, current_actor()))


@request_bp.route("/<int:rid>", methods=["PUT"])
def update_request(rid):
    data = json_body()
    fields = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if not fields:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"Provide at least one of: {', '.join(EDITABLE_FIELDS)}",
        )
    return jsonify(request_service.update_request(rid, current_actor(), **fields))


@request_bp.route("/<int:rid>", methods=["DELETE"])
def delete_request(rid):
    return jsonify(request_service.delete_request(rid, current_actor()))


@request_bp.route("/<int:rid>/submit", methods=["POST"])
def submit_request(rid):
    return run_action(rid, "submit")


# ── Attachments ──────────────────────────────────────────────────────────────

@request_bp.route("/<int:rid>/attachments", methods=["POST"])
def upload_attachment(rid):
    file = request.files.get("file")
    if file is None:
        return api_error(E.VALIDATION_REQUIRED, "Multipart field 'file' is required")
    return jsonify(request_service.add_attachment(rid, current_actor(), file)), 201


@request_bp.route("/<int:rid>/attachments/<int:aid>", methods=["DELETE"])
def delete_attachment(rid, aid):
    return jsonify(request_service.remove_attachment(rid, aid, current_actor()))


@request_bp.route("/<int:rid>/transitions", methods=["GET"])
def list_transitions(rid):
    items = request_queries.transition_history(rid, current_actor())
    return jsonify({"items": items, "total": len(items)})
