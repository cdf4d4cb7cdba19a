"""
Workflow paths — ordered sequences of departments a request traverses
after Department A has triaged it.

A path is linear: steps are ordered by ``step_order`` (unique per path,
not necessarily contiguous) and a department appears at most once per
path, so the current department alone fixes the request's position.
"Next" and "previous" are the neighbouring steps by order, never by
position in a list.
"""

from datetime import datetime, timezone

from reqflow.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class WorkflowPath(db.Model):
    __tablename__ = "workflow_paths"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    steps = db.relationship(
        "WorkflowPathStep",
        back_populates="workflow_path",
        order_by="WorkflowPathStep.step_order",
        cascade="all, delete-orphan",
    )

    def first_step(self):
        """Return the step with the lowest step_order, or None for an empty path."""
        return (
            WorkflowPathStep.query
            .filter_by(workflow_path_id=self.id)
            .order_by(WorkflowPathStep.step_order.asc())
            .first()
        )

    def step_for_department(self, department_id):
        """Return the step owned by ``department_id``, or None."""
        if department_id is None:
            return None
        return (
            WorkflowPathStep.query
            .filter_by(workflow_path_id=self.id, department_id=department_id)
            .one_or_none()
        )

    def to_dict(self, include_steps=True):
        d = {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "is_active": self.is_active,
        }
        if include_steps:
            d["steps"] = [s.to_dict() for s in self.steps]
        return d

    def __repr__(self):
        return f"<WorkflowPath #{self.id} {self.code}>"


class WorkflowPathStep(db.Model):
    __tablename__ = "workflow_path_steps"
    __table_args__ = (
        db.UniqueConstraint("workflow_path_id", "step_order", name="uq_path_step_order"),
        db.UniqueConstraint("workflow_path_id", "department_id", name="uq_path_step_department"),
    )

    id = db.Column(db.Integer, primary_key=True)
    workflow_path_id = db.Column(
        db.Integer, db.ForeignKey("workflow_paths.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=False)
    step_order = db.Column(db.Integer, nullable=False)
    requires_approval = db.Column(db.Boolean, nullable=False, default=True)

    workflow_path = db.relationship("WorkflowPath", back_populates="steps")
    department = db.relationship("Department")

    def next_step(self):
        """Step with the next-greater step_order in the same path, or None at the end."""
        return (
            WorkflowPathStep.query
            .filter(
                WorkflowPathStep.workflow_path_id == self.workflow_path_id,
                WorkflowPathStep.step_order > self.step_order,
            )
            .order_by(WorkflowPathStep.step_order.asc())
            .first()
        )

    def previous_step(self):
        """Step with the next-lesser step_order in the same path, or None at the start."""
        return (
            WorkflowPathStep.query
            .filter(
                WorkflowPathStep.workflow_path_id == self.workflow_path_id,
                WorkflowPathStep.step_order < self.step_order,
            )
            .order_by(WorkflowPathStep.step_order.desc())
            .first()
        )

    def to_dict(self):
        return {
            "id": self.id,
            "department_id": self.department_id,
            "department_name": self.department.name if self.department else None,
            "step_order": self.step_order,
            "requires_approval": self.requires_approval,
        }
