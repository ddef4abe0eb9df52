"""
api/routes/users.py -- Self-service profile endpoints.

Routes:
  GET    /users/profile  -- the caller's own account
  PUT    /users/profile  -- change own name and/or email
  DELETE /users/profile  -- delete own account

Every route is scoped to the identity in the caller's token; there is no way
to address another user's profile here.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, ProfileUpdate, UserResponse
from auth import credentials
from auth.dependencies import get_claims
from auth.models import TokenClaims
from auth.store import UserStore

# Auth policy: every route requires a valid token (get_claims).
router = APIRouter()


@router.get("/users/profile", response_model=UserResponse)
def get_profile(request: Request, claims: TokenClaims = Depends(get_claims)) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    return UserResponse.from_user(credentials.get_profile(user_store, claims))


@router.put("/users/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    claims: TokenClaims = Depends(get_claims),
) -> UserResponse:
    """Update name and/or email. Role cannot be changed here."""
    user_store: UserStore = request.app.state.user_store
    updated = credentials.update_own_profile(user_store, claims, name=body.name, email=body.email)
    return UserResponse.from_user(updated)


@router.delete("/users/profile", response_model=MessageResponse)
def delete_profile(request: Request, claims: TokenClaims = Depends(get_claims)) -> MessageResponse:
    """Delete the caller's account. Existing tokens stay valid until they expire."""
    user_store: UserStore = request.app.state.user_store
    credentials.delete_own_profile(user_store, claims)
    return MessageResponse(message="Account deleted successfully.")
