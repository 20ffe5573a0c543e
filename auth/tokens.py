"""
auth/tokens.py -- JWT and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Two token types share the signing key and are
       told apart by the "type" claim:
         access  -- 15 minutes, returned in the response body, sent back as
                    Authorization: Bearer. Not stored server-side.
         refresh -- 7 days, carries a random tokenId, travels only in the
                    refreshToken cookie. Honoured only while the (user, tokenId)
                    pair is on the allowlist in auth/store.py.
       Decoding returns None on any failure -- route layer turns that into 401.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time does
       not reveal whether an email is registered.

  SECRET_KEY and expiries come from core.config.get_settings(), looked up on
       each call so tests can swap settings with get_settings.cache_clear().

Layer rule: no imports from api/ or shop/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("foodorder.auth")

_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes of its input; longer passwords are
    truncated before hashing so bcrypt 4.x does not reject them.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("foodorder_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _encode(claims: dict, expire_seconds: int) -> str:
    settings = get_settings()
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expire_seconds)
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def create_access_token(user_id: str, role: str) -> str:
    """Encode a short-lived access token for the given user."""
    settings = get_settings()
    return _encode({"sub": user_id, "role": role, "type": ACCESS}, settings.access_token_expire_seconds)


def create_refresh_token(user_id: str) -> tuple[str, str]:
    """Encode a refresh token with a fresh tokenId. Returns (token, token_id).

    secrets.token_hex(16) gives each device session its own 128-bit id, so a
    single session can be revoked without touching the others.
    """
    settings = get_settings()
    token_id = secrets.token_hex(16)
    token = _encode({"sub": user_id, "tokenId": token_id, "type": REFRESH}, settings.refresh_token_expire_seconds)
    return token, token_id


def decode_token(token: str, expected_type: str) -> dict | None:
    """Decode and verify a JWT of the expected type. None on any failure."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != expected_type or "sub" not in payload:
        return None
    if expected_type == REFRESH and "tokenId" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user
