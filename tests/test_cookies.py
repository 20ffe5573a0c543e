"""Unit tests for auth/cookies.py -- refresh cookie policy.

Covers:
- set and clear descriptors agree on name, httpOnly, secure, sameSite, path in every mode
- production -> Secure + SameSite=strict; non-production -> not Secure + SameSite=lax
- max age is 7 days (604800 s) on set, absent on clear
- set_refresh_cookie / clear_refresh_cookie emit matching Set-Cookie headers
"""

from __future__ import annotations

from dataclasses import replace

import pytest
from starlette.responses import Response

from auth.cookies import (
    REFRESH_COOKIE_NAME,
    CookiePolicy,
    SameSite,
    clear_refresh_cookie,
    set_refresh_cookie,
)
from conftest import parse_set_cookie
from core.config import DeploymentMode, Settings

ALL_MODES = list(DeploymentMode)


@pytest.mark.parametrize("mode", ALL_MODES)
def test_set_and_clear_descriptors_share_identity_attributes(mode: DeploymentMode) -> None:
    policy = CookiePolicy(mode=mode)
    set_d = policy.build_set_descriptor()
    clear_d = policy.build_clear_descriptor()
    assert set_d.name == clear_d.name == "refreshToken"
    assert set_d.http_only is clear_d.http_only is True
    assert set_d.secure == clear_d.secure
    assert set_d.same_site == clear_d.same_site
    assert set_d.path == clear_d.path == "/api/v1/auth"


@pytest.mark.parametrize("mode", ALL_MODES)
def test_clear_descriptor_only_drops_max_age(mode: DeploymentMode) -> None:
    policy = CookiePolicy(mode=mode)
    set_d = policy.build_set_descriptor()
    clear_d = policy.build_clear_descriptor()
    assert clear_d.max_age_millis is None
    assert clear_d.max_age_seconds is None
    # Everything else is identical.
    assert replace(set_d, max_age_millis=None) == clear_d


def test_production_is_secure_and_strict() -> None:
    d = CookiePolicy(mode=DeploymentMode.production).build_set_descriptor()
    assert d.secure is True
    assert d.same_site is SameSite.strict


@pytest.mark.parametrize("mode", [DeploymentMode.development, DeploymentMode.test])
def test_non_production_is_lax_and_not_secure(mode: DeploymentMode) -> None:
    d = CookiePolicy(mode=mode).build_set_descriptor()
    assert d.secure is False
    assert d.same_site is SameSite.lax


def test_max_age_is_seven_days() -> None:
    d = CookiePolicy(mode=DeploymentMode.production).build_set_descriptor()
    assert d.max_age_millis == 7 * 24 * 60 * 60 * 1000
    assert d.max_age_seconds == 604800


def test_cookie_name_is_fixed() -> None:
    assert CookiePolicy(mode=DeploymentMode.development).cookie_name() == REFRESH_COOKIE_NAME == "refreshToken"


def test_from_settings_tracks_mode_and_refresh_expiry() -> None:
    settings = Settings(app_env="production", secret_key="x" * 32, refresh_token_expire_seconds=604800)
    policy = CookiePolicy.from_settings(settings)
    assert policy.is_production
    assert policy.build_set_descriptor().max_age_seconds == 604800


def test_descriptors_are_immutable() -> None:
    d = CookiePolicy(mode=DeploymentMode.development).build_set_descriptor()
    with pytest.raises(AttributeError):
        d.path = "/"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def test_set_refresh_cookie_header_in_production() -> None:
    resp = Response()
    set_refresh_cookie(resp, "tok123", CookiePolicy(mode=DeploymentMode.production))
    name, value, attrs = parse_set_cookie(resp.headers["set-cookie"])
    assert name == "refreshToken"
    assert value == "tok123"
    assert "httponly" in attrs
    assert "secure" in attrs
    assert attrs["samesite"].lower() == "strict"
    assert attrs["path"] == "/api/v1/auth"
    assert attrs["max-age"] == "604800"


def test_set_refresh_cookie_header_in_development() -> None:
    resp = Response()
    set_refresh_cookie(resp, "tok123", CookiePolicy(mode=DeploymentMode.development))
    _name, _value, attrs = parse_set_cookie(resp.headers["set-cookie"])
    assert "secure" not in attrs
    assert attrs["samesite"].lower() == "lax"


@pytest.mark.parametrize("mode", ALL_MODES)
def test_clear_cookie_matches_set_cookie_identity(mode: DeploymentMode) -> None:
    policy = CookiePolicy(mode=mode)
    set_resp = Response()
    set_refresh_cookie(set_resp, "tok123", policy)
    clear_resp = Response()
    clear_refresh_cookie(clear_resp, policy)

    set_name, _v, set_attrs = parse_set_cookie(set_resp.headers["set-cookie"])
    clear_name, _v, clear_attrs = parse_set_cookie(clear_resp.headers["set-cookie"])

    assert clear_name == set_name
    for attr in ("path", "samesite"):
        assert clear_attrs[attr] == set_attrs[attr]
    for flag in ("httponly", "secure"):
        assert (flag in clear_attrs) == (flag in set_attrs)
    # Immediate expiry instead of a 7 day lifetime.
    assert clear_attrs["max-age"] == "0"
