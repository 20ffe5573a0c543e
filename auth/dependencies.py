"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Protected routes authenticate with the short-lived access token sent as
Authorization: Bearer <token>. The refresh cookie is deliberately NOT accepted
here: it is scoped to /api/v1/auth and only ever exchanged for a new access
token via POST /auth/refresh.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_user() and raises HTTP 403 unless is_admin().

Layer rule: no imports from api/ or shop/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.tokens import ACCESS, decode_token

ADMIN_ROLE = "admin"


def is_admin(user: User) -> bool:
    return user.role == ADMIN_ROLE


def try_get_current_user(request: Request) -> User | None:
    """Return the authenticated User, or None. Never raises."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    payload = decode_token(auth_header[7:], ACCESS)
    if payload is None:
        return None
    # Re-read the user so deleted or deactivated accounts lose access
    # before their access token expires.
    user = request.app.state.user_store.get_by_id(payload["sub"])
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_admin(request: Request) -> User:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if not is_admin(user):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
