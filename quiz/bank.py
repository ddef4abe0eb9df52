"""
quiz/bank.py -- Question Bank operations.

Every write asks auth/access.py first; reads are public. A missing id is not
an error at this layer: update_question() returns None and delete_question()
returns False, and the HTTP layer decides how to present that.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.access import Capability, authorize
from auth.models import TokenClaims
from core.errors import ValidationError
from quiz.models import OPTION_LABELS, Question
from quiz.store import QuizStore

logger = logging.getLogger("quizdesk.quiz")

_TEXT_FIELDS = ("question", "a", "b", "c", "d")


def _normalize_correct(value: str) -> str:
    label = (value or "").strip().lower()
    if label not in OPTION_LABELS:
        raise ValidationError("correct must be one of: a, b, c, d.")
    return label


def _normalize_text(field: str, value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} must not be empty.")
    return cleaned


def create_question(store: QuizStore, claims: Optional[TokenClaims], **fields) -> Question:
    """Add a question. All of question, a, b, c, d and correct are required."""
    authorize(claims, Capability.WRITE_QUESTIONS)
    missing = [f for f in (*_TEXT_FIELDS, "correct") if fields.get(f) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

    question = Question(
        question=_normalize_text("question", fields["question"]),
        a=_normalize_text("a", fields["a"]),
        b=_normalize_text("b", fields["b"]),
        c=_normalize_text("c", fields["c"]),
        d=_normalize_text("d", fields["d"]),
        correct=_normalize_correct(fields["correct"]),
    )
    question.id = store.create_question(question)
    logger.info("Question added id=%s by admin id=%s", question.id, claims.user_id)
    return question


def list_questions(store: QuizStore, claims: Optional[TokenClaims] = None) -> list[Question]:
    authorize(claims, Capability.READ_QUESTIONS)
    return store.list_questions()


def update_question(
    store: QuizStore, claims: Optional[TokenClaims], question_id: int, **fields
) -> Optional[Question]:
    """Partially update a question. Keys whose value is None are ignored.

    Returns None when question_id does not exist.
    """
    authorize(claims, Capability.WRITE_QUESTIONS)
    updates: dict = {}
    for name in _TEXT_FIELDS:
        if fields.get(name) is not None:
            updates[name] = _normalize_text(name, fields[name])
    if fields.get("correct") is not None:
        updates["correct"] = _normalize_correct(fields["correct"])

    updated = store.update_question(question_id, **updates)
    if updated is not None:
        logger.info("Question updated id=%s fields=%s", question_id, sorted(updates))
    return updated


def delete_question(store: QuizStore, claims: Optional[TokenClaims], question_id: int) -> bool:
    """Remove one question. Returns False (never raises) when it does not exist."""
    authorize(claims, Capability.WRITE_QUESTIONS)
    deleted = store.delete_question(question_id)
    if deleted:
        logger.info("Question deleted id=%s by admin id=%s", question_id, claims.user_id)
    return deleted


def delete_all_questions(store: QuizStore, claims: Optional[TokenClaims]) -> int:
    authorize(claims, Capability.DELETE_ALL_QUESTIONS)
    count = store.delete_all_questions()
    logger.info("All questions deleted (%d) by admin id=%s", count, claims.user_id)
    return count
