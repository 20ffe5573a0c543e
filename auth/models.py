"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores own persistence,
api/dto.py owns the client-facing projection, routes do the orchestration.

Layer rule: no imports from api/ or shop/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A customer or staff account.

    hashed_password is a bcrypt hash and must never leave the server. The
    response mappers in api/dto.py project User into UserView, which has no
    password field at all.

    email is stored in normalized form (see core/validation.normalize_email),
    so lookups by email compare normalized values on both sides.
    """

    name: str
    email: str
    hashed_password: str
    role: str = "customer"  # "customer", "restaurant_owner", "admin"
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    is_active: bool = True


@dataclass
class RefreshSession:
    """One allowlisted refresh token (one device).

    The refresh JWT carries token_id; a token is only honoured while a row
    with the same (user_id, token_id) exists and expires_at is in the future.
    Revocation deletes the row.
    """

    user_id: str
    token_id: str
    created_at: str
    expires_at: str
    device_info: str | None = None
