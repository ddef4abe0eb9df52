"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in quiz/models.py -- dataclasses own domain shape; stores and services do the
work.

Layer rule: no imports from api/ or quiz/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"
ROLES = (ROLE_ADMIN, ROLE_STUDENT)


@dataclass
class User:
    """A registered account.

    email is the login identity and is stored normalized (trimmed, lower-case).
    role is fixed at creation: public registration only ever produces
    "student"; "admin" comes from the first-run bootstrap or from an existing
    admin. Profile updates touch name and email only.

    hashed_password never leaves the auth layer -- API responses are built
    from the other fields.
    """

    name: str
    email: str
    role: str  # "admin" | "student"
    id: int | None = None
    hashed_password: str = ""
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token.

    Ephemeral: built by SessionIssuer.verify() on every protected request and
    discarded with the request. Nothing here is re-checked against the store.
    """

    user_id: int
    email: str
    role: str
    issued_at: int  # unix seconds
    expires_at: int  # unix seconds

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
