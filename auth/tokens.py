"""
auth/tokens.py -- JWT, password hashing, and cookie utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id, issue time and expiry -- nothing else. Tokens are stateless:
       there is no revocation list, so role or account changes take effect
       when the next token is minted. get_current_user() compensates by
       re-loading the user on every request.

       verify_access_token() never raises for attacker-controlled input. It
       returns the user id or a TokenFailure so the caller can tell an expired
       session from a forged one.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

  SECRET_KEY: sourced from core.config.get_settings(). Rotating it
       invalidates every outstanding token.

Layer rule: no imports from api/, whitelist/, activity/, or extconfig/.
Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("guardian.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

AUTH_COOKIE = "token"


class TokenFailure(str, Enum):
    """Why a bearer token was rejected."""

    EXPIRED = "expired"
    MALFORMED = "malformed"


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt truncates at 72 bytes; the API layer caps passwords at 128 chars.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("guardian_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / verify
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: int,
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
    secret_key: str | None = None,
) -> str:
    """Encode a signed JWT binding user_id with a fixed expiry.

    Args:
        user_id:        Numeric user ID stored in the DB.
        expire_seconds: Token lifetime. 0 (default) uses
                        Settings.token_expire_seconds.
        issued_at:      Issue time; defaults to now. Tests pass a past time
                        to produce an already-expired token.
        secret_key:     Signing key; defaults to Settings.secret_key.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    iat = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "iat": int(iat.timestamp()),
        "exp": int((iat + timedelta(seconds=duration)).timestamp()),
    }
    return jwt.encode(payload, secret_key or _settings.secret_key, algorithm=_ALGORITHM)


def verify_access_token(token: str, secret_key: str | None = None) -> int | TokenFailure:
    """Verify signature and expiry. Returns the user id or a TokenFailure.

    A token signed with any other key is MALFORMED, even when it has also
    expired: the signature is checked before the claims.
    """
    try:
        payload = jwt.decode(token, secret_key or _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError:
        return TokenFailure.EXPIRED
    except JWTError:
        return TokenFailure.MALFORMED
    user_id = payload.get("user_id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return TokenFailure.MALFORMED
    return user_id


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the user exists, so response time does
    not reveal which emails are registered. Returns the User or None.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT as an httpOnly "token" cookie with the token's lifetime.

    The admin UI relies on the cookie; the extension and API clients send the
    Authorization header instead.
    """
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )
