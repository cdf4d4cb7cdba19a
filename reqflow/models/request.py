"""
Request domain model — Request, RequestAttachment, RequestTransition.

Lifecycle:
    draft → pending (Department A) → in_review (path steps) → approved
          → completed, with rejected / need_more_details as side exits.

Business rules carried by the schema:
    - status=draft implies current_department_id IS NULL.
    - status=completed implies completed_at IS NOT NULL.
    - ``version`` is the optimistic-concurrency counter: every UPDATE is
      emitted as ``... WHERE id = ? AND version = ?`` and a lost race
      surfaces as StaleDataError on flush.
    - RequestTransition rows are append-only; an ORM update is refused,
      and only a known routing action can be inserted.
"""

from datetime import datetime, timezone

from sqlalchemy import event

from reqflow.models import db
from reqflow.models.soft_delete import SoftDeleteMixin

# ── Constants ────────────────────────────────────────────────────────────────

REQUEST_STATUSES = (
    "draft",
    "pending",
    "in_review",
    "need_more_details",
    "approved",
    "rejected",
    "completed",
)

# Statuses in which the owner may still edit title/description/details.
EDITABLE_STATUSES = frozenset({"draft", "need_more_details"})

TRANSITION_ACTIONS = frozenset({
    "submit",
    "assign_path",
    "assign_employee",
    "reject",
    "request_more_details",
    "return_to_manager",
    "return_to_dept_a",
    "return_to_previous",
    "approve",
    "complete",
})


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Request(SoftDeleteMixin, db.Model):
    """
    An end-user request routed through Department A and a workflow path.

    ``current_user_id`` is the individually assigned handler inside the
    current department; NULL means the department manager owns it.
    """

    __tablename__ = "requests"
    __table_args__ = (
        db.Index("ix_requests_owner", "owner_id"),
        db.Index("ix_requests_department_status", "current_department_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    owner_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    current_department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True)
    current_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    workflow_path_id = db.Column(db.Integer, db.ForeignKey("workflow_paths.id"), nullable=True)
    status = db.Column(db.String(30), nullable=False, default="draft", index=True)
    rejection_reason = db.Column(db.Text)
    additional_details = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    owner = db.relationship("User", foreign_keys=[owner_id])
    assignee = db.relationship("User", foreign_keys=[current_user_id])
    current_department = db.relationship("Department")
    workflow_path = db.relationship("WorkflowPath")
    attachments = db.relationship(
        "RequestAttachment",
        back_populates="request",
        order_by="RequestAttachment.id",
        cascade="all, delete-orphan",
    )
    transitions = db.relationship(
        "RequestTransition",
        back_populates="request",
        order_by="[RequestTransition.created_at, RequestTransition.id]",
        cascade="all, delete-orphan",
    )
    evaluations = db.relationship(
        "RequestEvaluation", back_populates="request", cascade="all, delete-orphan",
    )

    def to_dict(self):
        """Flat serialisation of the row itself; related projections live in request_queries."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "owner_id": self.owner_id,
            "current_department_id": self.current_department_id,
            "current_user_id": self.current_user_id,
            "workflow_path_id": self.workflow_path_id,
            "status": self.status,
            "rejection_reason": self.rejection_reason,
            "additional_details": self.additional_details,
            "submitted_at": _iso(self.submitted_at),
            "completed_at": _iso(self.completed_at),
            "version": self.version,
            "is_deleted": self.is_deleted,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Request #{self.id} {self.status}>"


class RequestAttachment(db.Model):
    """Attachment metadata. The bytes live with the attachment storage collaborator."""

    __tablename__ = "request_attachments"

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer, db.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    uploaded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(120))
    file_size = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    request = db.relationship("Request", back_populates="attachments")

    def to_dict(self):
        return {
            "id": self.id,
            "request_id": self.request_id,
            "uploaded_by": self.uploaded_by,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "created_at": _iso(self.created_at),
        }


class RequestTransition(db.Model):
    """
    Immutable audit record of one status / department / owner change.

    Written in the same unit of work as the Request mutation it describes.
    The chronological list of these rows is the only historical truth
    about a request.
    """

    __tablename__ = "request_transitions"
    __table_args__ = (
        db.Index("ix_request_transitions_request_created", "request_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer, db.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    from_department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True)
    to_department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True)
    to_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=True,
        comment="Individually assigned handler after the transition",
    )
    actioned_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    action = db.Column(db.String(40), nullable=False)
    from_status = db.Column(db.String(30), nullable=False)
    to_status = db.Column(db.String(30), nullable=False)
    comments = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    request = db.relationship("Request", back_populates="transitions")
    actor = db.relationship("User", foreign_keys=[actioned_by])
    to_user = db.relationship("User", foreign_keys=[to_user_id])
    from_department = db.relationship("Department", foreign_keys=[from_department_id])
    to_department = db.relationship("Department", foreign_keys=[to_department_id])

    def to_dict(self):
        return {
            "id": self.id,
            "request_id": self.request_id,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "from_department_id": self.from_department_id,
            "from_department_name": self.from_department.name if self.from_department else None,
            "to_department_id": self.to_department_id,
            "to_department_name": self.to_department.name if self.to_department else None,
            "to_user_id": self.to_user_id,
            "to_user_name": self.to_user.name if self.to_user else None,
            "actioned_by": self.actioned_by,
            "actioned_by_name": self.actor.name if self.actor else None,
            "comments": self.comments,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<RequestTransition #{self.id} {self.action} {self.from_status}->{self.to_status}>"


@event.listens_for(RequestTransition, "before_update")
def _refuse_transition_update(mapper, connection, target):
    raise RuntimeError(f"RequestTransition #{target.id} is append-only and cannot be updated")


@event.listens_for(RequestTransition, "before_insert")
def _check_transition_action(mapper, connection, target):
    if target.action not in TRANSITION_ACTIONS:
        raise ValueError(f"Unknown transition action: {target.action!r}")
