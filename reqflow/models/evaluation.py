"""
Evaluation scorecard — global weighted questions and per-request scores.

Weights are Numeric(5, 2) so that 33.33 + 33.33 + 33.34 sums exactly to
100.00. The "active weights sum to at most 100" rule is enforced by the
evaluation service at write time, not by the schema.
"""

from datetime import datetime, timezone

from reqflow.models import db

WEIGHT_LIMIT = 100
SCORE_MIN = 0
SCORE_MAX = 100


def _utcnow():
    return datetime.now(timezone.utc)


class EvaluationQuestion(db.Model):
    __tablename__ = "evaluation_questions"

    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.Text, nullable=False)
    weight = db.Column(db.Numeric(5, 2), nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    evaluations = db.relationship(
        "RequestEvaluation", back_populates="question", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "question": self.question,
            "weight": float(self.weight) if self.weight is not None else None,
            "display_order": self.display_order,
            "is_active": self.is_active,
        }


class RequestEvaluation(db.Model):
    """One score per (request, question). A resubmission overwrites the row."""

    __tablename__ = "request_evaluations"
    __table_args__ = (
        db.UniqueConstraint("request_id", "evaluation_question_id", name="request_question_unique"),
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer, db.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    evaluation_question_id = db.Column(
        db.Integer, db.ForeignKey("evaluation_questions.id", ondelete="CASCADE"), nullable=False,
    )
    evaluated_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    score = db.Column(db.Integer, nullable=False, comment="0–100 for this question")
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    request = db.relationship("Request", back_populates="evaluations")
    question = db.relationship("EvaluationQuestion", back_populates="evaluations")
    evaluator = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "request_id": self.request_id,
            "evaluation_question_id": self.evaluation_question_id,
            "evaluated_by": self.evaluated_by,
            "score": self.score,
            "notes": self.notes,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
