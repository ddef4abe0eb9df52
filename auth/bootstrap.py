"""
auth/bootstrap.py -- Admin creation paths.

Two ways an admin account comes into existence, deliberately asymmetric:

  create_first_admin()  -- unauthenticated, first-run only. Returns a token
                           so the new admin is signed in immediately.
  create_admin()        -- an existing admin creates another. No token: the
                           new admin logs in separately.

The first-run path is gated twice: no admin may exist AND the app_settings
setup_completed flag must be unset. The flag is one-way, so deleting every
admin later does not reopen the path.

Layer rule: no imports from api/ or quiz/.
"""

from __future__ import annotations

import logging

from auth.access import Capability, authorize
from auth.credentials import create_user
from auth.models import ROLE_ADMIN, TokenClaims, User
from auth.store import UserStore
from auth.tokens import SessionIssuer
from core.errors import Forbidden

logger = logging.getLogger("quizdesk.auth")


def first_admin_available(store: UserStore) -> bool:
    """Return True while the first-run path is still open."""
    return not store.is_setup_complete() and store.count_by_role(ROLE_ADMIN) == 0


def create_first_admin(
    store: UserStore, issuer: SessionIssuer, name: str, email: str, password: str
) -> tuple[User, str]:
    """Create the very first admin and sign them in.

    Raises Forbidden (and writes nothing) once any admin exists or setup has
    completed before. The zero-admin check and the insert are not atomic; two
    simultaneous first-run requests with different emails can both succeed.
    """
    if not first_admin_available(store):
        raise Forbidden("Setup already complete. An admin account already exists.")

    admin = create_user(store, name, email, password, ROLE_ADMIN)
    store.mark_setup_complete()
    logger.info("First-run setup complete: admin id=%s created", admin.id)
    token = issuer.issue(admin.id, admin.email, admin.role)
    return admin, token


def create_admin(store: UserStore, claims: TokenClaims | None, name: str, email: str, password: str) -> User:
    """Create another admin on behalf of an authenticated admin. No token is issued."""
    authorize(claims, Capability.CREATE_ADMIN)
    admin = create_user(store, name, email, password, ROLE_ADMIN)
    # An admin now exists either way; keep the first-run path closed for good.
    if not store.is_setup_complete():
        store.mark_setup_complete()
    logger.info("Admin id=%s created admin id=%s", claims.user_id, admin.id)
    return admin
