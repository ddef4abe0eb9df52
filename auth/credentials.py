"""
auth/credentials.py -- Credential Store operations.

Everything that creates, finds, changes or removes a User goes through here.
Functions take the UserStore as their first argument (same shape as
authenticate()) so they can be called from routes, from auth/bootstrap.py, and
from tests against an in-memory store.

  register(store, name, email, password, role)  -- public path rejects "admin"
  authenticate(store, email, password, role)    -- timing-equalized
  find_by_email / find_by_email_and_role
  get_profile / update_own_profile / delete_own_profile  -- scoped to claims
  update_profile(store, user_id, name, email)
  delete_user(store, user_id)
  delete_student(store, claims, user_id)        -- admin removes a student
  list_students(store, claims)

Layer rule: no imports from api/ or quiz/.
"""

from __future__ import annotations

import logging

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as SchemaError
from sqlalchemy.exc import IntegrityError

from auth.access import Capability, authorize
from auth.models import ROLE_ADMIN, ROLE_STUDENT, ROLES, TokenClaims, User
from auth.store import UserStore
from auth.tokens import _DUMMY_HASH, hash_password, verify_password
from core.errors import Conflict, Forbidden, NotFound, StoreFailure, ValidationError

logger = logging.getLogger("quizdesk.auth")

_EMAIL = TypeAdapter(EmailStr)

_MAX_NAME_LENGTH = 255
_MIN_PASSWORD_LENGTH = 8
# bcrypt only looks at the first 72 bytes of a password.
_MAX_PASSWORD_BYTES = 72


def normalize_email(raw_email: str | None) -> str:
    """Normalize an email string by stripping whitespace and lowering case."""
    return (raw_email or "").strip().lower()


def _validate_email(email: str) -> str:
    normalized = normalize_email(email)
    try:
        _EMAIL.validate_python(normalized)
    except SchemaError as exc:
        raise ValidationError("A valid email address is required.") from exc
    return normalized


def _validate_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name is required.")
    if len(cleaned) > _MAX_NAME_LENGTH:
        raise ValidationError(f"Name must be at most {_MAX_NAME_LENGTH} characters.")
    return cleaned


def _validate_password(password: str) -> str:
    if not password:
        raise ValidationError("Password is required.")
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
    if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {_MAX_PASSWORD_BYTES} bytes.")
    return password


def check_registration_role(role: str | None) -> str:
    """Return the role a self-registration asked for, or refuse it.

    Runs before any other field is looked at: asking for admin is Forbidden
    no matter what else is wrong with the request.
    """
    requested = (role or ROLE_STUDENT).strip().lower()
    if requested == ROLE_ADMIN:
        raise Forbidden("Admin accounts cannot be created through registration.")
    if requested != ROLE_STUDENT:
        raise ValidationError("Role must be 'student'.")
    return requested


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def create_user(store: UserStore, name: str, email: str, password: str, role: str) -> User:
    """Validate, hash and insert a user with the given role. No role policy here.

    Used by register() and by auth/bootstrap.py. Raises Conflict when the email
    is already taken -- either by the pre-insert check or by the UNIQUE
    constraint when a concurrent request won the race.
    """
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")
    name = _validate_name(name)
    email = _validate_email(email)
    password = _validate_password(password)

    if store.get_by_email(email) is not None:
        raise Conflict("A user with that email already exists.")

    user = User(name=name, email=email, role=role, hashed_password=hash_password(password))
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise Conflict("A user with that email already exists.") from exc

    created = store.get_by_id(user_id)
    if created is None:
        raise StoreFailure(f"User id={user_id} missing after insert.")
    logger.info("Created %s account id=%s", role, user_id)
    return created


def register(store: UserStore, name: str, email: str, password: str, role: str | None = None) -> User:
    """Public self-registration. Only ever produces role=student.

    A caller asking for role=admin gets Forbidden and nothing is written.
    Admins come from auth/bootstrap.py only.
    """
    return create_user(store, name, email, password, check_registration_role(role))


# ---------------------------------------------------------------------------
# Lookup and authentication
# ---------------------------------------------------------------------------


def find_by_email(store: UserStore, email: str) -> User | None:
    return store.get_by_email(normalize_email(email))


def find_by_email_and_role(store: UserStore, email: str, role: str) -> User | None:
    return store.get_by_email_and_role(normalize_email(email), role)


def authenticate(store: UserStore, email: str, password: str, role: str) -> User | None:
    """Authenticate an (email, password, role) login with timing equalization.

    Always runs bcrypt whether or not a matching account exists, so response
    time does not reveal which of the three fields was wrong:
    - Unknown email or wrong role: bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any mismatch.
    """
    user = find_by_email_and_role(store, email, role) if role in ROLES else None
    if user is None:
        verify_password(password or "", _DUMMY_HASH)
        return None
    if not verify_password(password or "", user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Self-service profile
# ---------------------------------------------------------------------------


def get_profile(store: UserStore, claims: TokenClaims | None) -> User:
    authorize(claims, Capability.MANAGE_OWN_PROFILE)
    user = store.get_by_id(claims.user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


def update_profile(store: UserStore, user_id: int, name: str | None = None, email: str | None = None) -> User:
    """Change name and/or email. Role and password are untouched.

    Raises NotFound if user_id does not exist and Conflict if the new email is
    registered to someone else.
    """
    current = store.get_by_id(user_id)
    if current is None:
        raise NotFound("User not found.")

    updates: dict = {}
    if name is not None:
        updates["name"] = _validate_name(name)
    if email is not None:
        new_email = _validate_email(email)
        if new_email != current.email:
            other = store.get_by_email(new_email)
            if other is not None and other.id != user_id:
                raise Conflict("A user with that email already exists.")
            updates["email"] = new_email

    try:
        found = store.update_profile(user_id, **updates)
    except IntegrityError as exc:
        raise Conflict("A user with that email already exists.") from exc
    updated = store.get_by_id(user_id) if found else None
    if updated is None:
        raise NotFound("User not found.")
    return updated


def update_own_profile(
    store: UserStore, claims: TokenClaims | None, name: str | None = None, email: str | None = None
) -> User:
    authorize(claims, Capability.MANAGE_OWN_PROFILE)
    return update_profile(store, claims.user_id, name=name, email=email)


def delete_user(store: UserStore, user_id: int) -> None:
    """Delete an account by id. Raises NotFound if it is already gone."""
    if not store.delete_user(user_id):
        raise NotFound("User not found.")
    logger.info("Deleted account id=%s", user_id)


def delete_own_profile(store: UserStore, claims: TokenClaims | None) -> None:
    authorize(claims, Capability.MANAGE_OWN_PROFILE)
    delete_user(store, claims.user_id)


# ---------------------------------------------------------------------------
# Admin student management
# ---------------------------------------------------------------------------


def list_students(store: UserStore, claims: TokenClaims | None) -> list[User]:
    authorize(claims, Capability.VIEW_STUDENTS)
    return store.list_by_role(ROLE_STUDENT)


def delete_student(store: UserStore, claims: TokenClaims | None, user_id: int) -> None:
    """Admin removes one student. Admin accounts are never matched."""
    authorize(claims, Capability.DELETE_STUDENT)
    if not store.delete_user(user_id, role=ROLE_STUDENT):
        raise NotFound("Student not found.")
    logger.info("Admin id=%s deleted student id=%s", claims.user_id, user_id)
