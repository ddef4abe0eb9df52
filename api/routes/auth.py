"""
api/routes/auth.py -- Registration, login and first-run setup.

Routes:
  POST /auth/register      -- self-registration (students only); returns a token
  POST /auth/login         -- email + password + role login; returns a token
  POST /setup/first-admin  -- first-run admin creation; returns a token

Security:
  All three routes accept a password and are rate-limited per IP.
  credentials.authenticate() provides timing equalization -- use it,
  never inline find_by_email_and_role() + verify_password().
  Cache-Control: no-store on every response carrying a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import CREDENTIAL_RATE_LIMIT, limiter
from api.models import AdminCreate, AuthResponse, ErrorDetail, ErrorResponse, LoginRequest, RegisterRequest, UserResponse
from auth import bootstrap, credentials
from auth.models import User
from auth.store import UserStore
from auth.tokens import SessionIssuer

# Auth policy:
# - POST /auth/register:      public -- role=admin in the body is rejected with 403
# - POST /auth/login:         public
# - POST /setup/first-admin:  public, but inert once any admin exists
router = APIRouter()


def _token_response(issuer: SessionIssuer, user: User, token: str, status_code: int) -> JSONResponse:
    body = AuthResponse(
        token=token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=issuer.expire_seconds,
        user=UserResponse.from_user(user),
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(CREDENTIAL_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a student account and sign it in.

    Raises Forbidden (403) for role=admin, Conflict (400) for a taken email.
    """
    user_store: UserStore = request.app.state.user_store
    issuer: SessionIssuer = request.app.state.issuer

    user = credentials.register(user_store, body.name, body.email, body.password, body.role)
    token = issuer.issue(user.id, user.email, user.role)
    return _token_response(issuer, user, token, status_code=201)


@limiter.limit(CREDENTIAL_RATE_LIMIT)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email, password and role.

    Returns the same generic error whichever of the three fields was wrong
    ("bad_credentials") to avoid leaking which accounts exist.
    """
    user_store: UserStore = request.app.state.user_store
    issuer: SessionIssuer = request.app.state.issuer

    user = credentials.authenticate(user_store, body.email, body.password, body.role.strip().lower())
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="bad_credentials", message="Invalid email, password or role.")
            ).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = issuer.issue(user.id, user.email, user.role)
    return _token_response(issuer, user, token, status_code=200)


@limiter.limit(CREDENTIAL_RATE_LIMIT)
@router.post("/setup/first-admin", response_model=AuthResponse, status_code=201)
def first_admin(request: Request, body: AdminCreate) -> JSONResponse:
    """Create the first admin account and sign it in.

    Forbidden (403) once any admin exists; the path never reopens.
    """
    user_store: UserStore = request.app.state.user_store
    issuer: SessionIssuer = request.app.state.issuer

    admin, token = bootstrap.create_first_admin(user_store, issuer, body.name, body.email, body.password)
    return _token_response(issuer, admin, token, status_code=201)
