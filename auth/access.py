"""
auth/access.py -- Access Control: one decision function for every capability.

Pattern: Policy table + pure function. decide() looks the requested
Capability up in _POLICY and compares it against the verified claims. It has
no I/O and no framework imports, so the whole authorization model is
unit-testable without a request.

  decide(claims, capability)    -> Decision (never raises)
  authorize(claims, capability) -> claims, or raises Unauthorized / Forbidden
  result_scope(claims)          -> None (every result) or the caller's own id

Evaluation order: a capability that needs authentication denies missing
claims with Unauthorized before the role is looked at.

Layer rule: no imports from api/ or quiz/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.models import TokenClaims
from core.errors import Forbidden, Unauthorized


class Capability(str, Enum):
    READ_QUESTIONS = "read_questions"
    WRITE_QUESTIONS = "write_questions"
    DELETE_ALL_QUESTIONS = "delete_all_questions"
    DELETE_STUDENT = "delete_student"
    DELETE_ALL_RESULTS = "delete_all_results"
    VIEW_STUDENTS = "view_students"
    VIEW_STATS = "view_stats"
    CREATE_ADMIN = "create_admin"
    SUBMIT_RESULT = "submit_result"
    LIST_RESULTS = "list_results"
    MANAGE_OWN_PROFILE = "manage_own_profile"


class _Requirement(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


_POLICY: dict[Capability, _Requirement] = {
    Capability.READ_QUESTIONS: _Requirement.PUBLIC,
    Capability.WRITE_QUESTIONS: _Requirement.ADMIN,
    Capability.DELETE_ALL_QUESTIONS: _Requirement.ADMIN,
    Capability.DELETE_STUDENT: _Requirement.ADMIN,
    Capability.DELETE_ALL_RESULTS: _Requirement.ADMIN,
    Capability.VIEW_STUDENTS: _Requirement.ADMIN,
    Capability.VIEW_STATS: _Requirement.ADMIN,
    Capability.CREATE_ADMIN: _Requirement.ADMIN,
    Capability.SUBMIT_RESULT: _Requirement.AUTHENTICATED,
    Capability.LIST_RESULTS: _Requirement.AUTHENTICATED,
    Capability.MANAGE_OWN_PROFILE: _Requirement.AUTHENTICATED,
}

DENY_UNAUTHENTICATED = "unauthenticated"
DENY_FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Decision:
    """Outcome of an access check.

    denial is None when allowed, otherwise DENY_UNAUTHENTICATED or
    DENY_FORBIDDEN. reason is a human-readable message safe to return to the
    caller.
    """

    allowed: bool
    reason: str
    denial: str | None = None


def decide(claims: TokenClaims | None, capability: Capability) -> Decision:
    requirement = _POLICY[capability]
    if requirement is _Requirement.PUBLIC:
        return Decision(allowed=True, reason="Public operation.")
    if claims is None:
        return Decision(allowed=False, reason="Authentication required.", denial=DENY_UNAUTHENTICATED)
    if requirement is _Requirement.ADMIN and not claims.is_admin:
        return Decision(allowed=False, reason="Admin access required.", denial=DENY_FORBIDDEN)
    return Decision(allowed=True, reason=f"Allowed for role {claims.role}.")


def authorize(claims: TokenClaims | None, capability: Capability) -> TokenClaims | None:
    """Raise the error matching a denied Decision; return claims when allowed."""
    decision = decide(claims, capability)
    if decision.allowed:
        return claims
    if decision.denial == DENY_UNAUTHENTICATED:
        raise Unauthorized(decision.reason)
    raise Forbidden(decision.reason)


def result_scope(claims: TokenClaims) -> int | None:
    """Return the student id a results listing is restricted to, or None for all.

    Admins see every result; anyone else sees only their own.
    """
    authorize(claims, Capability.LIST_RESULTS)
    return None if claims.is_admin else claims.user_id
