"""
Demo organisation — departments, paths, users and the evaluation scorecard.

Used by the ``flask seed-demo`` CLI command and by the test suite's ``org``
fixture. Idempotent on department / path codes and user emails: running it
twice does not duplicate rows.

Layout:
    Department A (DEPT_A)  — triage, validation and scoring
    Technology   (TECH)    — step 1 of PATH_1
    Operations   (OPS)     — step 2 of PATH_1, only step of PATH_2
"""

import logging
from decimal import Decimal

from reqflow.models import db
from reqflow.models.evaluation import EvaluationQuestion
from reqflow.models.organization import Department, DepartmentMember, User
from reqflow.models.workflow import WorkflowPath, WorkflowPathStep

logger = logging.getLogger(__name__)

# ═════════════════════════════════════════════════════════════════════════════
# DATA
# ═════════════════════════════════════════════════════════════════════════════

DEPARTMENT_DATA = [
    {"code": "DEPT_A", "name": "Department A", "is_department_a": True,
     "description": "Receives every request, assigns workflow paths and validates the result"},
    {"code": "TECH", "name": "Technology",
     "description": "Infrastructure, hardware and software requests"},
    {"code": "OPS", "name": "Operations",
     "description": "Facilities and procurement"},
]

PATH_DATA = [
    {"code": "PATH_1", "name": "Technology then Operations",
     "description": "Technical review followed by operational fulfilment",
     "steps": [("TECH", True), ("OPS", True)]},
    {"code": "PATH_2", "name": "Operations only",
     "description": "Single-step operational fulfilment",
     "steps": [("OPS", False)]},
]

# (key, name, email, role, [(department code, member role), ...])
USER_DATA = [
    ("requester", "Regular User", "user@workflow.com", "user", []),
    ("manager_a", "Department A Manager", "manager.a@workflow.com", "user", [("DEPT_A", "manager")]),
    ("employee_a", "Department A Employee", "employee.a@workflow.com", "user", [("DEPT_A", "employee")]),
    ("manager_tech", "Technology Manager", "manager.tech@workflow.com", "user", [("TECH", "manager")]),
    ("employee_tech_1", "Technology Employee 1", "emp.tech1@workflow.com", "user", [("TECH", "employee")]),
    ("employee_tech_2", "Technology Employee 2", "emp.tech2@workflow.com", "user", [("TECH", "employee")]),
    ("manager_ops", "Operations Manager", "manager.ops@workflow.com", "user", [("OPS", "manager")]),
    ("employee_ops", "Operations Employee", "emp.ops1@workflow.com", "user", [("OPS", "employee")]),
    ("admin", "Administrator", "admin@workflow.com", "admin", []),
]

QUESTION_DATA = [
    {"question": "How well does the outcome meet the original business need?", "weight": "40.00", "display_order": 1},
    {"question": "How complete and accurate was the departments' work?", "weight": "35.00", "display_order": 2},
    {"question": "Was the request handled in a reasonable time?", "weight": "25.00", "display_order": 3},
]


# ═════════════════════════════════════════════════════════════════════════════
# SEEDER
# ═════════════════════════════════════════════════════════════════════════════

def _get_or_create(model, lookup: dict, **values):
    row = model.query.filter_by(**lookup).first()
    if row is None:
        row = model(**lookup, **values)
        db.session.add(row)
        db.session.flush()
    return row


def seed_demo_org(with_questions: bool = True) -> dict:
    """Create the demo organisation and commit.

    Returns:
        {"departments": {code: id}, "paths": {code: id}, "users": {key: id},
         "questions": [id, ...]}
    """
    departments = {}
    for d in DEPARTMENT_DATA:
        row = _get_or_create(
            Department, {"code": d["code"]},
            name=d["name"], description=d["description"],
            is_department_a=d.get("is_department_a", False),
        )
        departments[d["code"]] = row.id

    paths = {}
    for p in PATH_DATA:
        path = WorkflowPath.query.filter_by(code=p["code"]).first()
        if path is None:
            path = WorkflowPath(code=p["code"], name=p["name"], description=p["description"])
            for order, (dept_code, requires_approval) in enumerate(p["steps"], 1):
                path.steps.append(WorkflowPathStep(
                    department_id=departments[dept_code],
                    step_order=order,
                    requires_approval=requires_approval,
                ))
            db.session.add(path)
            db.session.flush()
        paths[p["code"]] = path.id

    users = {}
    for key, name, email, role, memberships in USER_DATA:
        user = _get_or_create(User, {"email": email}, name=name, role=role)
        for dept_code, member_role in memberships:
            _get_or_create(
                DepartmentMember,
                {"department_id": departments[dept_code], "user_id": user.id},
                role=member_role,
            )
        users[key] = user.id

    questions = []
    if with_questions:
        for q in QUESTION_DATA:
            row = _get_or_create(
                EvaluationQuestion, {"question": q["question"]},
                weight=Decimal(q["weight"]), display_order=q["display_order"],
            )
            questions.append(row.id)

    db.session.commit()
    logger.info(
        "Demo organisation seeded: %d departments, %d paths, %d users, %d questions",
        len(departments), len(paths), len(users), len(questions),
    )
    return {"departments": departments, "paths": paths, "users": users, "questions": questions}
