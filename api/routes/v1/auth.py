"""
api/routes/v1/auth.py -- Session lifecycle endpoints.

Routes:
  POST /api/v1/auth/signup      -- create account; 201 + access token + refresh cookie
  POST /api/v1/auth/login       -- password login; access token + refresh cookie
  POST /api/v1/auth/refresh     -- rotate refresh cookie; new access token
  POST /api/v1/auth/logout      -- revoke this device's refresh token; clear cookie
  POST /api/v1/auth/logout-all  -- revoke every refresh token of the caller (requires auth)
  GET  /api/v1/auth/me          -- current user (requires auth)

Token transport:
  The access token is returned in the JSON body (AuthView.accessToken) and sent
  back as Authorization: Bearer. The refresh token is only ever written to the
  refreshToken cookie through auth/cookies.py -- it never appears in a body.

Security:
  POST /login is rate-limited per client IP (Settings.login_rate_limit).
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a token.
  Refresh rotates: the presented token is revoked before a new one is issued,
  so a replayed refresh token is rejected.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.dto import AuthView, UserView, user_to_auth_view, user_to_view
from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LogoutAllResponse, MessageResponse, SignupRequest
from api.validation import validated_body
from auth.cookies import CookiePolicy, clear_refresh_cookie, set_refresh_cookie
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import REFRESH, authenticate_user, create_access_token, create_refresh_token, decode_token, hash_password
from core.config import Settings

logger = logging.getLogger("foodorder.auth")

# Auth policy:
# - POST /api/v1/auth/signup, /login, /refresh, /logout: public
# - POST /api/v1/auth/logout-all, GET /api/v1/auth/me:  requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _issue_session(request: Request, user: User, status_code: int = 200, device_info: str | None = None) -> JSONResponse:
    """Allowlist a new refresh token for user and build the token-bearing response."""
    settings: Settings = request.app.state.settings
    user_store: UserStore = request.app.state.user_store
    policy: CookiePolicy = request.app.state.cookie_policy

    access_token = create_access_token(user.id, user.role)
    refresh_token, token_id = create_refresh_token(user.id)
    user_store.store_refresh_session(
        user.id,
        token_id,
        ttl_seconds=settings.refresh_token_expire_seconds,
        device_info=device_info if device_info is not None else request.headers.get("user-agent"),
        max_devices=settings.max_devices,
    )
    logger.info("Session issued for user %s (%d active)", user.id, user_store.count_refresh_sessions(user.id))

    resp = JSONResponse(
        status_code=status_code,
        content=user_to_auth_view(user, access_token).model_dump(mode="json", by_alias=True),
    )
    set_refresh_cookie(resp, refresh_token, policy)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _refresh_token_from(request: Request) -> str | None:
    policy: CookiePolicy = request.app.state.cookie_policy
    return request.cookies.get(policy.cookie_name())


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=AuthView, status_code=201)
def signup(request: Request, body: SignupRequest = Depends(validated_body(SignupRequest))) -> JSONResponse:
    """Create a customer account and start a session.

    The email has already been trimmed and normalized by SignupRequest, so the
    UNIQUE constraint on users.email compares canonical addresses.
    """
    user_store: UserStore = request.app.state.user_store
    new_user = User(
        name=body.name,
        email=body.email,
        hashed_password=hash_password(body.password),
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "User already exists."},
        ) from exc

    user = user_store.get_by_id(user_id)
    logger.info("User signed up: %s", user_id)
    return _issue_session(request, user, status_code=201)


@limiter.limit(login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=AuthView)
def login(request: Request, body: LoginRequest = Depends(validated_body(LoginRequest))) -> JSONResponse:
    """Authenticate with email and password; set the refresh cookie.

    Returns the same generic error for unknown email and wrong password
    ("bad_credentials") to avoid leaking which addresses are registered.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    logger.info("User logged in: %s", user.id)
    return _issue_session(request, user)


@router.post("/auth/refresh", response_model=AuthView)
def refresh(request: Request) -> JSONResponse:
    """Exchange the refresh cookie for a new access token, rotating the cookie.

    The presented token must verify as a refresh JWT AND still be on the
    allowlist. Rotation is gated on deleting the old allowlist entry: of two
    requests replaying the same token, only the one whose delete removed the
    row gets a new session. The device info of the old session carries over.
    """
    user_store: UserStore = request.app.state.user_store

    payload = decode_token(_refresh_token_from(request) or "", REFRESH)
    if payload is None:
        logger.warning("Refresh rejected: missing or invalid token")
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_refresh_token", "message": "Invalid or expired refresh token."},
        )

    session = user_store.get_refresh_session(payload["sub"], payload["tokenId"])
    if session is None or not user_store.revoke_refresh_session(session.user_id, session.token_id):
        logger.warning("Refresh rejected: token not on allowlist for user %s", payload["sub"])
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_refresh_token", "message": "Refresh token revoked or expired."},
        )

    user = user_store.get_by_id(session.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_refresh_token", "message": "User not found or inactive."},
        )

    logger.info("Refresh token rotated for user %s", user.id)
    return _issue_session(request, user, device_info=session.device_info)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Revoke this device's refresh token and clear the cookie.

    Always succeeds: a missing, expired or forged cookie still gets a
    clearing Set-Cookie so the browser ends up logged out either way.
    """
    user_store: UserStore = request.app.state.user_store
    policy: CookiePolicy = request.app.state.cookie_policy

    payload = decode_token(_refresh_token_from(request) or "", REFRESH)
    if payload is not None:
        user_store.revoke_refresh_session(payload["sub"], payload["tokenId"])

    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    clear_refresh_cookie(resp, policy)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout-all", response_model=LogoutAllResponse)
def logout_all(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Revoke every refresh token of the current user (all devices)."""
    user_store: UserStore = request.app.state.user_store
    policy: CookiePolicy = request.app.state.cookie_policy

    revoked = user_store.revoke_all_refresh_sessions(current_user.id)
    logger.info("Logged out %d device(s) for user %s", revoked, current_user.id)

    resp = JSONResponse(
        content=LogoutAllResponse(
            message="Logged out from all devices",
            devices_logged_out=revoked,
        ).model_dump(by_alias=True)
    )
    clear_refresh_cookie(resp, policy)
    return resp


@router.get("/auth/me", response_model=UserView)
def me(current_user: User = Depends(get_current_user)) -> UserView:
    """Return the sanitized profile of the currently authenticated user."""
    return user_to_view(current_user)
