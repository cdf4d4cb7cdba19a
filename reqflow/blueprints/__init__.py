"""
Request Workflow Service
Blueprint registry and shared transport helpers.
"""

from flask import abort, jsonify, make_response, request

from reqflow.auth import current_actor
from reqflow.services.routing import perform_action
from reqflow.utils.errors import E, api_error


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def _bad_request(message):
    body, status = api_error(E.VALIDATION_INVALID, message)
    abort(make_response(body, status))


def json_body() -> dict:
    """The JSON object body, ``{}`` when absent; 400 for any other JSON type."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        _bad_request("Request body must be a JSON object")
    return data


def expected_version(data: dict):
    """Optional optimistic-concurrency token from the body."""
    value = data.get("expected_version")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        _bad_request("expected_version must be an integer")
    return value


def run_action(request_id: int, action: str, *input_names: str):
    """Dispatch one routing action with the named inputs taken from the JSON body."""
    data = json_body()
    comments = data.get("comments")
    if comments is not None and not isinstance(comments, str):
        _bad_request("comments must be a string")
    result = perform_action(
        request_id,
        action,
        current_actor(),
        expected_version=expected_version(data),
        comments=comments,
        **{name: data.get(name) for name in input_names},
    )
    return jsonify(result)
