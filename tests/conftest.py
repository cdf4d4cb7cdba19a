"""
Shared pytest fixtures for the request workflow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org: Demo organisation (Department A, TECH, OPS, PATH_1, PATH_2, users, 40/35/25 scorecard)
    - actor_of: org user key → Actor
    - headers_for: org user key → X-User-Id headers
    - make_request: create a request in a given status through the routing engine
"""

import pytest

from reqflow import create_app
from reqflow.models import db as _db
from reqflow.services.attachment_storage import LocalAttachmentStorage
from reqflow.services.authorization import load_actor


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    upload_root = str(tmp_path_factory.mktemp("uploads"))
    application.config["UPLOAD_FOLDER"] = upload_root
    application.config["MAX_ATTACHMENT_BYTES"] = 1024
    application.extensions["attachment_storage"] = LocalAttachmentStorage(upload_root, 1024)
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Organisation fixtures ────────────────────────────────────────────────


@pytest.fixture()
def org():
    """Seed the demo organisation and return its ids."""
    from reqflow.services.demo_seed import seed_demo_org
    return seed_demo_org()


@pytest.fixture()
def actor_of(org):
    """Resolve an org user key (e.g. "manager_a") to a fresh Actor."""
    def _actor(key):
        return load_actor(org["users"][key])
    return _actor


@pytest.fixture()
def headers_for(org):
    """X-User-Id headers for an org user key."""
    def _headers(key):
        return {"X-User-Id": str(org["users"][key])}
    return _headers


# Routing actions (with inputs) that take a fresh request to each status
# via PATH_1: TECH (step 1) → OPS (step 2).
_SETUP_STEPS = {
    "draft": [],
    "pending": [("requester", "submit", {})],
    "in_review": [("requester", "submit", {}), ("manager_a", "assign_path", {"workflow_path_id": "PATH_1"})],
    "approved": [
        ("requester", "submit", {}),
        ("manager_a", "assign_path", {"workflow_path_id": "PATH_1"}),
        ("manager_tech", "approve", {}),
        ("manager_ops", "approve", {}),
    ],
    "need_more_details": [("requester", "submit", {}), ("manager_a", "request_more_details", {})],
    "rejected": [("requester", "submit", {}), ("manager_a", "reject", {"rejection_reason": "Out of budget"})],
    "completed": [
        ("requester", "submit", {}),
        ("manager_a", "assign_path", {"workflow_path_id": "PATH_1"}),
        ("manager_a", "complete", {}),
    ],
}


@pytest.fixture()
def make_request(org, actor_of):
    """Create a request owned by the demo requester and drive it to ``status``.

    Returns the request id.
    """
    from reqflow.services.request_service import create_request
    from reqflow.services.routing import perform_action

    def _make(status="draft", title="New laptop", description="Current one is broken"):
        result = create_request(actor_of("requester"), title, description)
        request_id = result["request"]["id"]
        for user_key, action, inputs in _SETUP_STEPS[status]:
            inputs = dict(inputs)
            if inputs.get("workflow_path_id") in org["paths"]:
                inputs["workflow_path_id"] = org["paths"][inputs["workflow_path_id"]]
            perform_action(request_id, action, actor_of(user_key), **inputs)
        return request_id

    return _make
