"""
Evaluation Aggregator — weighted scorecard for requests.

Responsibilities:
    - Question administration with the weight budget enforced at write time:
      the sum of active question weights never exceeds 100.00.
    - Recording per-question scores (0–100 integers), upserted by
      (request, question) so a resubmission overwrites.
    - Composite score = Σ(score × weight) / 100 over the active questions,
      reported as ``incomplete`` while any active question is unscored.

All weight arithmetic is done in Decimal quantized to 0.01.

Usage:
    from reqflow.services import evaluation_service as evaluations

    evaluations.create_question("Business value", "40")
    evaluations.weight_total()            # {"total": "40.00", "remaining": "60.00", ...}
    evaluations.composite_score(req_id).to_dict()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Iterator, NamedTuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from reqflow.core.exceptions import ValidationError, WeightOverflowError
from reqflow.models import db
from reqflow.models.evaluation import (
    SCORE_MAX,
    SCORE_MIN,
    WEIGHT_LIMIT,
    EvaluationQuestion,
    RequestEvaluation,
)
from reqflow.models.request import Request
from reqflow.services.authorization import Actor, authorize
from reqflow.services.helpers.lookups import (
    as_int,
    get_active_request,
    get_department_a,
    get_or_raise,
)
from reqflow.services.helpers.unit_of_work import unit_of_work
from reqflow.services.routing import locate_current_step

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
LIMIT = Decimal(WEIGHT_LIMIT).quantize(CENT)


# ═════════════════════════════════════════════════════════════════════════════
# Weight budget
# ═════════════════════════════════════════════════════════════════════════════


def _parse_weight(value) -> Decimal:
    """Weight as Decimal in (0, 100] with at most two decimal places."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError("weight is required", details={"weight": "required"})
    try:
        # str() first so that floats like 33.33 do not carry binary noise.
        weight = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("weight must be a number", details={"weight": "invalid"}) from exc
    if not weight.is_finite() or weight <= 0 or weight > LIMIT:
        raise ValidationError(
            f"weight must be greater than 0 and at most {LIMIT}", details={"weight": "out_of_range"},
        )
    if weight != weight.quantize(CENT):
        raise ValidationError(
            "weight may have at most two decimal places", details={"weight": "precision"},
        )
    return weight.quantize(CENT)


def _active_total(exclude_question_id: int | None = None) -> Decimal:
    stmt = select(func.coalesce(func.sum(EvaluationQuestion.weight), 0)).where(
        EvaluationQuestion.is_active.is_(True),
    )
    if exclude_question_id is not None:
        stmt = stmt.where(EvaluationQuestion.id != exclude_question_id)
    return Decimal(str(db.session.execute(stmt).scalar_one())).quantize(CENT)


def validate_weights(additional, exclude_question_id: int | None = None) -> Decimal:
    """Check that ``additional`` active weight still fits the budget.

    Args:
        additional:          Weight about to become active.
        exclude_question_id: Question being edited (its current weight is
                             replaced, not added).

    Returns:
        The active total after the change.

    Raises:
        WeightOverflowError: If the active total would exceed 100.00.
    """
    additional = Decimal(additional).quantize(CENT)
    current = _active_total(exclude_question_id)
    if current + additional > LIMIT:
        logger.info(
            "Evaluation weight budget exceeded: current=%s requested=%s", current, additional,
        )
        raise WeightOverflowError(current, additional, LIMIT)
    return current + additional


def weight_total() -> dict:
    """Current active weight sum and what is left of the budget."""
    total = _active_total()
    return {
        "total": str(total),
        "remaining": str(LIMIT - total),
        "limit": str(LIMIT),
        "is_complete": total == LIMIT,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Question administration
# ═════════════════════════════════════════════════════════════════════════════


def _require_flag(value) -> bool:
    if not isinstance(value, bool):
        raise ValidationError("is_active must be a boolean", details={"is_active": "invalid"})
    return value


def list_questions(active_only: bool = True) -> list[EvaluationQuestion]:
    q = EvaluationQuestion.query
    if active_only:
        q = q.filter(EvaluationQuestion.is_active.is_(True))
    return q.order_by(EvaluationQuestion.display_order, EvaluationQuestion.id).all()


def create_question(
    question: str,
    weight,
    display_order: int = 0,
    is_active: bool = True,
) -> EvaluationQuestion:
    text = (question or "").strip() if isinstance(question, str) else ""
    if not text:
        raise ValidationError("question is required", details={"question": "required"})
    parsed = _parse_weight(weight)
    _require_flag(is_active)

    with unit_of_work():
        if is_active:
            validate_weights(parsed)
        row = EvaluationQuestion(
            question=text,
            weight=parsed,
            display_order=int(display_order or 0),
            is_active=is_active,
        )
        db.session.add(row)
        db.session.flush()

    logger.info("Evaluation question %s created (weight=%s)", row.id, parsed)
    return row


def update_question(question_id: int, **fields) -> EvaluationQuestion:
    """Update text, weight, display order or activation of a question.

    Activating a question, or raising the weight of an active one, re-checks
    the weight budget.
    """
    with unit_of_work():
        row = get_or_raise(EvaluationQuestion, question_id, "EvaluationQuestion")

        if "question" in fields:
            text = fields["question"]
            if not isinstance(text, str) or not text.strip():
                raise ValidationError("question is required", details={"question": "required"})
            row.question = text.strip()
        if "display_order" in fields:
            row.display_order = as_int(fields["display_order"], "display_order")

        weight = _parse_weight(fields["weight"]) if "weight" in fields else Decimal(row.weight)
        active = _require_flag(fields["is_active"]) if "is_active" in fields else row.is_active
        if active:
            validate_weights(weight, exclude_question_id=row.id)

        row.weight = weight
        row.is_active = active

    logger.info("Evaluation question %s updated", row.id)
    return row


def deactivate_question(question_id: int) -> EvaluationQuestion:
    """Take a question out of the active scorecard. Existing scores are kept."""
    with unit_of_work():
        row = get_or_raise(EvaluationQuestion, question_id, "EvaluationQuestion")
        row.is_active = False
    logger.info("Evaluation question %s deactivated", row.id)
    return row


# ═════════════════════════════════════════════════════════════════════════════
# Scores
# ═════════════════════════════════════════════════════════════════════════════


def _parse_score(value, question_id) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"score for question {question_id} must be an integer",
            details={"question_id": question_id, "score": "invalid"},
        )
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise ValidationError(
            f"score for question {question_id} must be between {SCORE_MIN} and {SCORE_MAX}",
            details={"question_id": question_id, "score": "out_of_range"},
        )
    return value


def record_score(
    req: Request,
    question_id,
    evaluator_id: int,
    score,
    notes: str | None = None,
) -> RequestEvaluation:
    """Insert or overwrite the score of one (request, question) pair.

    Joins the caller's unit of work; does not commit.
    """
    question_id = as_int(question_id, "question_id")
    score = _parse_score(score, question_id)
    question = db.session.get(EvaluationQuestion, question_id)
    if question is None or not question.is_active:
        raise ValidationError(
            f"Evaluation question {question_id} does not exist or is inactive",
            details={"question_id": question_id},
        )

    row = RequestEvaluation.query.filter_by(
        request_id=req.id, evaluation_question_id=question_id,
    ).first()
    if row is None:
        row = RequestEvaluation(request_id=req.id, evaluation_question_id=question_id)
        db.session.add(row)
    row.evaluated_by = evaluator_id
    row.score = score
    row.notes = notes
    return row


def submit_evaluation(request_id: int, actor: Actor, answers: list[dict]) -> list[RequestEvaluation]:
    """Record a batch of scores for a request held by Department A.

    Args:
        answers: [{"question_id": int, "score": int, "notes": str|None}, ...]

    Safe to resubmit: every answer upserts. When a concurrent submission
    inserts the same (request, question) pair first, the unique constraint
    rejects this batch and it is replayed once as an update.
    """
    if not isinstance(answers, list) or not answers:
        raise ValidationError("evaluations must be a non-empty list", details={"evaluations": "required"})

    try:
        rows = _record_answers(request_id, actor, answers)
    except IntegrityError:
        logger.info(
            "Evaluation for request %s collided with a concurrent submission; retrying", request_id,
            extra={"request_ref": request_id, "action": "submit_evaluation", "actor_id": actor.user_id},
        )
        rows = _record_answers(request_id, actor, answers)

    logger.info(
        "Evaluation recorded for request %s (%d answers)", request_id, len(rows),
        extra={"request_ref": request_id, "action": "submit_evaluation", "actor_id": actor.user_id},
    )
    return rows


def _record_answers(request_id: int, actor: Actor, answers: list) -> list[RequestEvaluation]:
    with unit_of_work():
        req = get_active_request(request_id)
        dept_a = get_department_a()
        authorize(
            actor, "submit_evaluation", req,
            department_a_id=dept_a.id, step=locate_current_step(req),
        )
        rows = []
        for answer in answers:
            if not isinstance(answer, dict):
                raise ValidationError("each evaluation must be an object", details={"evaluations": "invalid"})
            rows.append(record_score(
                req,
                answer.get("question_id"),
                actor.user_id,
                answer.get("score"),
                answer.get("notes"),
            ))
    return rows


# ═════════════════════════════════════════════════════════════════════════════
# Composite score
# ═════════════════════════════════════════════════════════════════════════════


class ScoreLine(NamedTuple):
    question: EvaluationQuestion
    score: int
    weight: Decimal


class ScoreBreakdown:
    """Restartable view of (question, score, weight) for one request.

    Every iteration re-reads the database, so a breakdown taken before a
    resubmission reflects the new scores when iterated again.
    """

    def __init__(self, request_id: int):
        self.request_id = request_id

    def __iter__(self) -> Iterator[ScoreLine]:
        stmt = (
            select(EvaluationQuestion, RequestEvaluation.score)
            .join(
                RequestEvaluation,
                RequestEvaluation.evaluation_question_id == EvaluationQuestion.id,
            )
            .where(
                RequestEvaluation.request_id == self.request_id,
                EvaluationQuestion.is_active.is_(True),
            )
            .order_by(EvaluationQuestion.display_order, EvaluationQuestion.id)
        )
        for question, score in db.session.execute(stmt):
            yield ScoreLine(question, score, Decimal(question.weight).quantize(CENT))

    def total(self) -> Decimal:
        return (
            sum((Decimal(line.score) * line.weight for line in self), Decimal(0)) / 100
        ).quantize(CENT)


@dataclass
class CompositeScore:
    request_id: int
    status: str                      # "complete" | "incomplete"
    score: Decimal | None
    lines: list[ScoreLine] = field(default_factory=list)
    missing_question_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "status": self.status,
            "score": float(self.score) if self.score is not None else None,
            "evaluations": [
                {
                    "question_id": line.question.id,
                    "question": line.question.question,
                    "weight": float(line.weight),
                    "score": line.score,
                }
                for line in self.lines
            ],
            "missing_question_ids": self.missing_question_ids,
        }


def composite_score(request_id: int) -> CompositeScore:
    """Weighted aggregate of the request's scores over active questions.

    Incomplete (score None) while any active question has no score yet.
    """
    breakdown = ScoreBreakdown(request_id)
    lines = list(breakdown)
    scored = {line.question.id for line in lines}
    missing = [q.id for q in list_questions(active_only=True) if q.id not in scored]
    if missing or not lines:
        return CompositeScore(request_id, "incomplete", None, lines, missing)
    return CompositeScore(request_id, "complete", breakdown.total(), lines, [])


def evaluation_for_request(request_id: int, actor: Actor) -> dict:
    """Active questions with the scores already given for a request (evaluation form)."""
    req = get_active_request(request_id)
    dept_a = get_department_a()
    authorize(actor, "submit_evaluation", req, department_a_id=dept_a.id)
    existing = {
        e.evaluation_question_id: e
        for e in RequestEvaluation.query.filter_by(request_id=req.id).all()
    }
    questions = []
    for q in list_questions(active_only=True):
        d = q.to_dict()
        ev = existing.get(q.id)
        d["score"] = ev.score if ev else None
        d["notes"] = ev.notes if ev else None
        questions.append(d)
    return {"request_id": req.id, "questions": questions, "weights": weight_total()}
