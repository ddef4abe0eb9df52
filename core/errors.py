"""
core/errors.py -- Domain error taxonomy for QuizDesk.

Components raise these; they never raise HTTPException. api/main.py registers
one exception handler for QuizDeskError that reads status_code and code off
the instance and renders the shared ErrorResponse envelope. This keeps the
auth/ and quiz/ layers free of transport concerns and unit-testable without a
running app.

Layer rule: core/ is the kernel. No imports from api/, auth/, or quiz/.
"""

from __future__ import annotations


class QuizDeskError(Exception):
    """Base class for every error that maps to a client-visible response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(QuizDeskError):
    """Missing or malformed input."""

    status_code = 400
    code = "validation_error"


class Unauthorized(QuizDeskError):
    """No credentials supplied where authentication is required."""

    status_code = 401
    code = "unauthorized"


class Forbidden(QuizDeskError):
    """Credentials rejected, or valid but lacking the role or ownership."""

    status_code = 403
    code = "forbidden"


class Conflict(QuizDeskError):
    """Duplicate unique key (e.g. an email that is already registered)."""

    status_code = 400
    code = "conflict"


class NotFound(QuizDeskError):
    status_code = 404
    code = "not_found"


class StoreFailure(QuizDeskError):
    """Persistence layer error. The message shown to clients is generic."""

    status_code = 500
    code = "store_failure"
