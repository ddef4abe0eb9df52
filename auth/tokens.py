"""
auth/tokens.py -- Session tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, email (as "sub"), role, issued-at and expiry. Verification
       returns None on any failure -- the dependency layer turns that into a
       403, and a missing token into a 401.

  Passwords: bcrypt directly. Its cost factor makes brute-force of
       low-entropy secrets expensive. The _DUMMY_HASH constant enables timing
       equalization in auth/credentials.authenticate() so response time does
       not reveal whether an account exists.

  SECRET_KEY: passed in explicitly. SessionIssuer is constructed once in the
       application lifespan from Settings and stored on app.state; there is no
       module-level key. Settings refuses to load without one.

Layer rule: no imports from api/ or quiz/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import ROLES, TokenClaims

logger = logging.getLogger("quizdesk.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password length at 72 characters of ASCII-or-less input via Pydantic.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash or oversized input -- treat as a mismatch.
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("quizdesk_timing_dummy")


# ---------------------------------------------------------------------------
# Session issuer
# ---------------------------------------------------------------------------


class SessionIssuer:
    """Issues and verifies signed bearer tokens.

    Usage:
        issuer = SessionIssuer(settings.secret_key, settings.token_expire_seconds)
        token = issuer.issue(user.id, user.email, user.role)
        claims = issuer.verify(token)   # TokenClaims or None

    verify() never consults the store: a token is trusted for its full
    lifetime once issued.
    """

    def __init__(self, secret_key: str, expire_seconds: int = 86400) -> None:
        if not secret_key:
            raise ValueError("SessionIssuer requires a non-empty secret key.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int, email: str, role: str) -> str:
        """Encode a signed JWT carrying identity, email and role."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": email,
            "user_id": user_id,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.expire_seconds)).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims | None:
        """Decode and verify a JWT. Returns TokenClaims, or None on any failure.

        Covers bad signatures, malformed tokens, expired tokens, and tokens
        whose payload is missing a required claim or carries an unknown role.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        user_id = payload.get("user_id")
        role = payload.get("role")
        if not isinstance(user_id, int) or role not in ROLES or "exp" not in payload:
            return None
        return TokenClaims(
            user_id=user_id,
            email=payload.get("sub", ""),
            role=role,
            issued_at=int(payload.get("iat", 0)),
            expires_at=int(payload["exp"]),
        )
