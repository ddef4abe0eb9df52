"""
quiz/ledger.py -- Result Ledger: scoring, recording and listing quiz attempts.

Scoring rule (applied once, at write time):
  percentage = round(score / total_questions * 100), halves rounded up
  passed     = percentage >= PASS_MARK

Rounding uses integer arithmetic so 1/8 (12.5%) becomes 13, matching the
arithmetic rounding students expect rather than Python's round-half-to-even.

Listing is scoped by auth/access.result_scope(): admins see the whole ledger
with each owner's current identity resolved; students see only their own rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from auth.access import Capability, authorize, result_scope
from auth.models import ROLE_STUDENT, TokenClaims, User
from auth.store import UserStore
from core.errors import NotFound, StoreFailure, ValidationError
from quiz.models import Result
from quiz.store import QuizStore

logger = logging.getLogger("quizdesk.quiz")

PASS_MARK = 60


@dataclass
class LedgerEntry:
    """A Result plus, for admin listings, the owner's current account.

    owner is None for student listings (the caller is the owner) and for
    results whose account has since been deleted.
    """

    result: Result
    owner: Optional[User] = None


def score_attempt(score: int, total_questions: int) -> tuple[int, bool]:
    """Return (percentage, passed) for a raw score.

    >>> score_attempt(6, 10)
    (60, True)
    >>> score_attempt(5, 10)
    (50, False)
    """
    if isinstance(score, bool) or isinstance(total_questions, bool):
        raise ValidationError("score and total_questions must be integers.")
    if total_questions < 1:
        raise ValidationError("total_questions must be at least 1.")
    if score < 0 or score > total_questions:
        raise ValidationError("score must be between 0 and total_questions.")
    # floor(score * 100 / total + 1/2) without floating point
    percentage = (score * 200 + total_questions) // (2 * total_questions)
    return percentage, percentage >= PASS_MARK


def record_result(
    quiz_store: QuizStore,
    user_store: UserStore,
    claims: Optional[TokenClaims],
    score: int,
    total_questions: int,
) -> Result:
    """Score and append one attempt for the authenticated caller.

    The caller's display name is read from the user store now and copied onto
    the row; it is never re-read later.
    """
    authorize(claims, Capability.SUBMIT_RESULT)
    percentage, passed = score_attempt(score, total_questions)

    student = user_store.get_by_id(claims.user_id)
    if student is None:
        raise NotFound("User not found.")

    result = Result(
        student_id=student.id,
        student_name=student.name,
        score=score,
        total_questions=total_questions,
        percentage=percentage,
        passed=passed,
    )
    result_id = quiz_store.create_result(result)
    stored = quiz_store.get_result(result_id)
    if stored is None:
        raise StoreFailure(f"Result id={result_id} missing after insert.")
    logger.info(
        "Result recorded id=%s student id=%s %d/%d (%d%%, passed=%s)",
        result_id,
        student.id,
        score,
        total_questions,
        percentage,
        passed,
    )
    return stored


def list_results(
    quiz_store: QuizStore, user_store: UserStore, claims: Optional[TokenClaims]
) -> list[LedgerEntry]:
    scope = result_scope(claims)
    results = quiz_store.list_results(student_id=scope)
    if scope is not None:
        return [LedgerEntry(result=r) for r in results]

    # Admin view: one batched lookup instead of a query per row.
    owners = user_store.get_many([r.student_id for r in results])
    return [LedgerEntry(result=r, owner=owners.get(r.student_id)) for r in results]


def delete_all_results(quiz_store: QuizStore, claims: Optional[TokenClaims]) -> int:
    authorize(claims, Capability.DELETE_ALL_RESULTS)
    count = quiz_store.delete_all_results()
    logger.info("All results deleted (%d) by admin id=%s", count, claims.user_id)
    return count


def stats(quiz_store: QuizStore, user_store: UserStore, claims: Optional[TokenClaims]) -> dict[str, int]:
    """Admin dashboard counts: students, questions, passed and failed results."""
    authorize(claims, Capability.VIEW_STATS)
    outcomes = quiz_store.count_results_by_outcome()
    return {
        "students": user_store.count_by_role(ROLE_STUDENT),
        "questions": quiz_store.count_questions(),
        "passed": outcomes["passed"],
        "failed": outcomes["failed"],
    }
