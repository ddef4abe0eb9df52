"""
api/routes/admin.py -- Admin-only management endpoints.

Routes:
  POST   /admin/create-admin        -- add another admin (no token issued)
  GET    /admin/students            -- list student accounts
  DELETE /admin/students/{user_id}  -- remove one student
  GET    /admin/stats               -- counts for the admin dashboard

The router only verifies the token. The admin-role check happens in the
component operation via auth/access.py, so a student token gets 403 from the
same decision function every other capability uses.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import CREDENTIAL_RATE_LIMIT, limiter
from api.models import AdminCreate, AdminCreatedResponse, MessageResponse, StatsResponse, UserResponse
from auth import bootstrap, credentials
from auth.dependencies import get_claims
from auth.models import TokenClaims
from auth.store import UserStore
from quiz import ledger
from quiz.store import QuizStore

# Auth policy: every route requires a valid token; each operation requires admin.
router = APIRouter()


@limiter.limit(CREDENTIAL_RATE_LIMIT)
@router.post("/admin/create-admin", response_model=AdminCreatedResponse, status_code=201)
def create_admin(
    request: Request,
    body: AdminCreate,
    claims: TokenClaims = Depends(get_claims),
) -> AdminCreatedResponse:
    """Create another admin. The new admin must log in separately."""
    user_store: UserStore = request.app.state.user_store
    admin = bootstrap.create_admin(user_store, claims, body.name, body.email, body.password)
    return AdminCreatedResponse(message="Admin created successfully.", admin=UserResponse.from_user(admin))


@router.get("/admin/students", response_model=list[UserResponse])
def list_students(request: Request, claims: TokenClaims = Depends(get_claims)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in credentials.list_students(user_store, claims)]


@router.delete("/admin/students/{user_id}", response_model=MessageResponse)
def delete_student(request: Request, user_id: int, claims: TokenClaims = Depends(get_claims)) -> MessageResponse:
    """Delete a student account. Their past results stay in the ledger."""
    user_store: UserStore = request.app.state.user_store
    credentials.delete_student(user_store, claims, user_id)
    return MessageResponse(message="Student deleted successfully.")


@router.get("/admin/stats", response_model=StatsResponse)
def get_stats(request: Request, claims: TokenClaims = Depends(get_claims)) -> StatsResponse:
    """Return student, question, passed and failed counts."""
    user_store: UserStore = request.app.state.user_store
    quiz_store: QuizStore = request.app.state.quiz_store
    return StatsResponse(**ledger.stats(quiz_store, user_store, claims))
