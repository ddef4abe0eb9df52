"""
API request and response models for QuizDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
quiz/models.py, which own the internal domain representation. Route handlers
map between the two via the from_* factory methods below.

No response model has a password field. hashed_password cannot leak through
serialization because it is never copied out of the domain object.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from auth.models import User
from quiz.ledger import LedgerEntry
from quiz.models import Question

# bcrypt ignores everything after 72 bytes; the service layer also checks bytes.
_PASSWORD_MAX = 72

# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register.

    role is accepted but only "student" (or omitted) succeeds. No field carries
    a schema constraint: a request for role=admin must get a 403 even when the
    rest of the body is wrong, so credentials.register() checks the role first
    and only then validates name, email (as EmailStr) and password.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = ""
    email: str = ""
    password: str = ""
    role: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /auth/login. All three fields must match."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    role: str = Field(min_length=1, max_length=30)


class AdminCreate(BaseModel):
    """Request body for POST /setup/first-admin and POST /admin/create-admin."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=_PASSWORD_MAX)


class ProfileUpdate(BaseModel):
    """Request body for PUT /users/profile. Omitted fields keep their value."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at or "",
        )


class AuthResponse(BaseModel):
    """Returned by register, login and first-admin setup."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class AdminCreatedResponse(BaseModel):
    """Returned by POST /admin/create-admin. Carries no token on purpose."""

    model_config = ConfigDict(frozen=True)

    message: str
    admin: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class BulkDeleteResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    deleted: int


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


class QuestionCreate(BaseModel):
    """Request body for POST /questions.

    correct is validated against a-d (case-insensitive) by quiz/bank.py.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    question: str = Field(min_length=1, max_length=2000)
    a: str = Field(min_length=1, max_length=500)
    b: str = Field(min_length=1, max_length=500)
    c: str = Field(min_length=1, max_length=500)
    d: str = Field(min_length=1, max_length=500)
    correct: str = Field(min_length=1, max_length=1)


class QuestionUpdate(BaseModel):
    """Request body for PUT /questions/{id}. Only supplied fields change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    question: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    a: Optional[str] = Field(default=None, min_length=1, max_length=500)
    b: Optional[str] = Field(default=None, min_length=1, max_length=500)
    c: Optional[str] = Field(default=None, min_length=1, max_length=500)
    d: Optional[str] = Field(default=None, min_length=1, max_length=500)
    correct: Optional[str] = Field(default=None, min_length=1, max_length=1)


class QuestionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    question: str
    a: str
    b: str
    c: str
    d: str
    correct: str

    @classmethod
    def from_question(cls, q: Question) -> "QuestionResponse":
        return cls(id=q.id, question=q.question, a=q.a, b=q.b, c=q.c, d=q.d, correct=q.correct)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ResultCreate(BaseModel):
    """Request body for POST /results.

    total_questions also accepts the camelCase key totalQuestions used by
    existing quiz front-ends.
    """

    score: int = Field(ge=0)
    total_questions: int = Field(
        ge=1,
        validation_alias=AliasChoices("total_questions", "totalQuestions"),
    )


class StudentRef(BaseModel):
    """The current identity of a result's owner (admin listings only)."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str


class ResultResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    student_id: int
    student_name: str
    score: int
    total_questions: int
    percentage: int
    passed: bool
    completed_at: str
    student: Optional[StudentRef] = None

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "ResultResponse":
        r = entry.result
        owner = entry.owner
        return cls(
            id=r.id,
            student_id=r.student_id,
            student_name=r.student_name,
            score=r.score,
            total_questions=r.total_questions,
            percentage=r.percentage,
            passed=r.passed,
            completed_at=r.completed_at,
            student=StudentRef(id=owner.id, name=owner.name, email=owner.email) if owner else None,
        )


class StatsResponse(BaseModel):
    """Response for GET /admin/stats."""

    model_config = ConfigDict(frozen=True)

    students: int
    questions: int
    passed: int
    failed: int


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
