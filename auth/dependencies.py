"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one credential source: the Authorization: Bearer <token> header.

try_get_claims() is the soft variant: returns None when no token was sent.
get_claims() wraps it and raises Unauthorized when the token is missing.
Both raise Forbidden when a token IS present but fails verification (bad
signature, tampered payload, expired).

Role checks do not live here. Routes hand the verified claims to the
component operation, which asks auth/access.py for a decision.

Layer rule: no imports from api/ or quiz/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import TokenClaims
from auth.tokens import SessionIssuer
from core.errors import Forbidden, Unauthorized


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def try_get_claims(request: Request) -> TokenClaims | None:
    """Return verified claims, or None when the request carries no bearer token.

    A token that is present but invalid is never silently ignored: it raises
    Forbidden so clients learn their session is no longer usable.
    """
    token = _bearer_token(request)
    if token is None:
        return None
    issuer: SessionIssuer = request.app.state.issuer
    claims = issuer.verify(token)
    if claims is None:
        raise Forbidden("Invalid or expired token.")
    return claims


def get_claims(request: Request) -> TokenClaims:
    """Require a valid bearer token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: TokenClaims = Depends(get_claims)): ...
    """
    claims = try_get_claims(request)
    if claims is None:
        raise Unauthorized("Authentication required.")
    return claims
