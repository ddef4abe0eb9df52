"""
quiz/store.py -- SQLAlchemy-backed persistence layer for questions and results.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in quiz/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. QuizStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route
handlers never touch SQL directly.

The store is deliberately dumb about policy: it neither checks roles nor
computes scores. A missing id is reported as None / False, never raised.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = QuizStore()                               # SQLite default
    store = QuizStore("postgresql://user:pw@host/db") # PostgreSQL
    qid = store.create_question(question)
    store.update_question(qid, correct="b")
    rid = store.create_result(result)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from quiz.models import Question, Result

_DEFAULT_DB_URL = "sqlite:///quizdesk.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_questions = Table(
    "questions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("question", Text, nullable=False),
    Column("a", Text, nullable=False),
    Column("b", Text, nullable=False),
    Column("c", Text, nullable=False),
    Column("d", Text, nullable=False),
    Column("correct", String(1), nullable=False),
    sqlite_autoincrement=True,
)

_results = Table(
    "results",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("student_id", Integer, nullable=False),
    Column("student_name", String(255), nullable=False),
    Column("score", Integer, nullable=False),
    Column("total_questions", Integer, nullable=False),
    Column("percentage", Integer, nullable=False),
    Column("passed", Integer, nullable=False),  # boolean stored as 0/1
    Column("completed_at", String(32), nullable=False),
    Index("idx_results_student", "student_id"),
    sqlite_autoincrement=True,
)

_QUESTION_FIELDS = {"question", "a", "b", "c", "d", "correct"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class QuizStore:
    """Repository for Question and Result entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def create_question(self, question: Question) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _questions.insert().values(
                    question=question.question,
                    a=question.a,
                    b=question.b,
                    c=question.c,
                    d=question.d,
                    correct=question.correct,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_question(self, question_id: int) -> Optional[Question]:
        with self.engine.connect() as conn:
            row = conn.execute(_questions.select().where(_questions.c.id == question_id)).fetchone()
        return _row_to_question(row) if row is not None else None

    def list_questions(self) -> list[Question]:
        """Return every question in insertion order."""
        with self.engine.connect() as conn:
            rows = conn.execute(_questions.select().order_by(_questions.c.id)).fetchall()
        return [_row_to_question(r) for r in rows]

    def update_question(self, question_id: int, **fields) -> Optional[Question]:
        """Merge the supplied fields over an existing question.

        Fields not passed keep their stored value. Unknown keys raise
        ValueError. Returns the updated Question, or None if question_id does
        not exist.
        """
        unknown = set(fields) - _QUESTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown question fields: {unknown!r}")
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _questions.update().where(_questions.c.id == question_id).values(**fields)
                )
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.get_question(question_id)

    def delete_question(self, question_id: int) -> bool:
        """Delete one question. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_questions.delete().where(_questions.c.id == question_id))
            conn.commit()
        return result.rowcount > 0

    def delete_all_questions(self) -> int:
        """Delete every question and return how many were removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_questions.delete())
            conn.commit()
        return result.rowcount

    def count_questions(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_questions)).scalar() or 0

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def create_result(self, result: Result) -> int:
        """Append a result. completed_at is stamped here, not by the caller."""
        with self.engine.connect() as conn:
            inserted = conn.execute(
                _results.insert().values(
                    student_id=result.student_id,
                    student_name=result.student_name,
                    score=result.score,
                    total_questions=result.total_questions,
                    percentage=result.percentage,
                    passed=1 if result.passed else 0,
                    completed_at=_now_iso(),
                )
            )
            conn.commit()
            return inserted.inserted_primary_key[0]

    def get_result(self, result_id: int) -> Optional[Result]:
        with self.engine.connect() as conn:
            row = conn.execute(_results.select().where(_results.c.id == result_id)).fetchone()
        return _row_to_result(row) if row is not None else None

    def list_results(self, student_id: Optional[int] = None) -> list[Result]:
        """Return results newest first, optionally restricted to one student."""
        stmt = _results.select()
        if student_id is not None:
            stmt = stmt.where(_results.c.student_id == student_id)
        stmt = stmt.order_by(_results.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_result(r) for r in rows]

    def delete_all_results(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(_results.delete())
            conn.commit()
        return result.rowcount

    def count_results_by_outcome(self) -> dict[str, int]:
        """Return {"passed": N, "failed": N} in a single aggregate query."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_results.c.passed, func.count()).group_by(_results.c.passed)
            ).fetchall()
        counts = {"passed": 0, "failed": 0}
        for passed, count in rows:
            counts["passed" if passed else "failed"] += count
        return counts

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_question(row) -> Question:
    return Question(
        id=row.id,
        question=row.question,
        a=row.a,
        b=row.b,
        c=row.c,
        d=row.d,
        correct=row.correct,
    )


def _row_to_result(row) -> Result:
    return Result(
        id=row.id,
        student_id=row.student_id,
        student_name=row.student_name,
        score=row.score,
        total_questions=row.total_questions,
        percentage=row.percentage,
        passed=bool(row.passed),
        completed_at=row.completed_at,
    )
