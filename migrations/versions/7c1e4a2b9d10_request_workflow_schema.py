"""request_workflow_schema

Create the request workflow schema: users, departments, department
membership, workflow paths and steps, requests with attachments and the
append-only transition log, evaluation questions and per-request scores.

Revision ID: 7c1e4a2b9d10
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e4a2b9d10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "departments" not in existing_tables:
        op.create_table(
            "departments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_department_a", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )
        op.create_index(
            "uq_departments_department_a",
            "departments",
            ["is_department_a"],
            unique=True,
            postgresql_where=sa.text("is_department_a"),
            sqlite_where=sa.text("is_department_a = 1"),
        )

    if "department_members" not in existing_tables:
        op.create_table(
            "department_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("department_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="employee"),
            sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("department_id", "user_id", name="uq_department_member"),
        )
        op.create_index("ix_department_members_department_id", "department_members", ["department_id"])
        op.create_index("ix_department_members_user_id", "department_members", ["user_id"])

    if "workflow_paths" not in existing_tables:
        op.create_table(
            "workflow_paths",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )

    if "workflow_path_steps" not in existing_tables:
        op.create_table(
            "workflow_path_steps",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workflow_path_id", sa.Integer(), nullable=False),
            sa.Column("department_id", sa.Integer(), nullable=False),
            sa.Column("step_order", sa.Integer(), nullable=False),
            sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.ForeignKeyConstraint(["workflow_path_id"], ["workflow_paths.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("workflow_path_id", "step_order", name="uq_path_step_order"),
            sa.UniqueConstraint("workflow_path_id", "department_id", name="uq_path_step_department"),
        )
        op.create_index("ix_workflow_path_steps_workflow_path_id", "workflow_path_steps", ["workflow_path_id"])

    if "requests" not in existing_tables:
        op.create_table(
            "requests",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=False),
            sa.Column("current_department_id", sa.Integer(), nullable=True),
            sa.Column("current_user_id", sa.Integer(), nullable=True),
            sa.Column("workflow_path_id", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="draft"),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("additional_details", sa.Text(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["current_department_id"], ["departments.id"]),
            sa.ForeignKeyConstraint(["current_user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["workflow_path_id"], ["workflow_paths.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_requests_owner", "requests", ["owner_id"])
        op.create_index("ix_requests_department_status", "requests", ["current_department_id", "status"])
        op.create_index("ix_requests_status", "requests", ["status"])
        op.create_index("ix_requests_deleted_at", "requests", ["deleted_at"])

    if "request_attachments" not in existing_tables:
        op.create_table(
            "request_attachments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("uploaded_by", sa.Integer(), nullable=False),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("file_path", sa.String(length=500), nullable=False),
            sa.Column("file_type", sa.String(length=120), nullable=True),
            sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_request_attachments_request_id", "request_attachments", ["request_id"])

    if "request_transitions" not in existing_tables:
        op.create_table(
            "request_transitions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("from_department_id", sa.Integer(), nullable=True),
            sa.Column("to_department_id", sa.Integer(), nullable=True),
            sa.Column("to_user_id", sa.Integer(), nullable=True),
            sa.Column("actioned_by", sa.Integer(), nullable=False),
            sa.Column("action", sa.String(length=40), nullable=False),
            sa.Column("from_status", sa.String(length=30), nullable=False),
            sa.Column("to_status", sa.String(length=30), nullable=False),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["from_department_id"], ["departments.id"]),
            sa.ForeignKeyConstraint(["to_department_id"], ["departments.id"]),
            sa.ForeignKeyConstraint(["to_user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["actioned_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_request_transitions_request_created", "request_transitions", ["request_id", "created_at"],
        )

    if "evaluation_questions" not in existing_tables:
        op.create_table(
            "evaluation_questions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("question", sa.Text(), nullable=False),
            sa.Column("weight", sa.Numeric(precision=5, scale=2), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_evaluation_questions_is_active", "evaluation_questions", ["is_active"])

    if "request_evaluations" not in existing_tables:
        op.create_table(
            "request_evaluations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("evaluation_question_id", sa.Integer(), nullable=False),
            sa.Column("evaluated_by", sa.Integer(), nullable=False),
            sa.Column("score", sa.Integer(), nullable=False, comment="0–100 for this question"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["request_id"], ["requests.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(
                ["evaluation_question_id"], ["evaluation_questions.id"], ondelete="CASCADE",
            ),
            sa.ForeignKeyConstraint(["evaluated_by"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("request_id", "evaluation_question_id", name="request_question_unique"),
        )
        op.create_index("ix_request_evaluations_request_id", "request_evaluations", ["request_id"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    # Children first
    for table in (
        "request_evaluations",
        "evaluation_questions",
        "request_transitions",
        "request_attachments",
        "requests",
        "workflow_path_steps",
        "workflow_paths",
        "department_members",
        "departments",
        "users",
    ):
        if table in existing_tables:
            op.drop_table(table)
