"""
quiz/models.py -- Domain dataclasses for the question bank and result ledger.

These are pure data containers with zero logic. Scoring lives in
quiz/ledger.py; persistence in quiz/store.py.
"""

from dataclasses import dataclass
from typing import Optional

OPTION_LABELS = ("a", "b", "c", "d")


@dataclass
class Question:
    """A multiple-choice question with four labelled options.

    correct is one of OPTION_LABELS. No ownership: any admin may edit any
    question and anyone may read them.

    id is None before the record is written to the database.
    """

    question: str
    a: str
    b: str
    c: str
    d: str
    correct: str  # "a" | "b" | "c" | "d"
    id: Optional[int] = None


@dataclass
class Result:
    """One recorded quiz attempt.

    student_name is a snapshot taken when the result is written. Renaming the
    student later does not touch past results.

    percentage and passed are derived once, at write time, and stored.
    Records are never updated -- only inserted, or wiped in bulk by an admin.
    """

    student_id: int
    student_name: str
    score: int
    total_questions: int
    percentage: int
    passed: bool
    completed_at: str = ""  # ISO 8601, set by store on insert
    id: Optional[int] = None
