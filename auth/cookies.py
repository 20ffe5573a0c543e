"""
auth/cookies.py -- Refresh-token cookie policy.

One CookiePolicy is built at startup from the deployment mode and stored on
app.state. Every route that sets or clears the refresh cookie asks the policy
for a descriptor instead of spelling out cookie attributes inline.

Attribute set:
  httponly      -- always; JS cannot read the refresh token (XSS mitigation).
  secure        -- production only; cookie travels over HTTPS only.
  samesite      -- "strict" in production, "lax" in development and test.
  path          -- /api/v1/auth, so the cookie is never sent to cart, payment
                   or admin endpoints.
  max_age       -- 7 days, equal to the refresh JWT expiry so the cookie never
                   outlives the credential it carries.

Set/clear symmetry:
  A browser only deletes a cookie when the clearing Set-Cookie matches the
  name, path, domain and samesite it was set with. Both descriptors are
  therefore derived from one base descriptor; the clear descriptor differs
  only by dropping max_age.

Layer rule: no imports from api/ or shop/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from core.config import DeploymentMode, Settings

REFRESH_COOKIE_NAME = "refreshToken"
REFRESH_COOKIE_PATH = "/api/v1/auth"
REFRESH_COOKIE_MAX_AGE_MILLIS = 7 * 24 * 60 * 60 * 1000


class SameSite(str, Enum):
    strict = "strict"
    lax = "lax"


@dataclass(frozen=True)
class CookieDescriptor:
    """Attributes for one Set-Cookie directive. max_age_millis None = no Max-Age."""

    name: str
    http_only: bool
    secure: bool
    same_site: SameSite
    path: str
    max_age_millis: int | None = None

    @property
    def max_age_seconds(self) -> int | None:
        if self.max_age_millis is None:
            return None
        return self.max_age_millis // 1000


@dataclass(frozen=True)
class CookiePolicy:
    """Computes the refresh cookie descriptors for one deployment mode."""

    mode: DeploymentMode
    max_age_millis: int = REFRESH_COOKIE_MAX_AGE_MILLIS

    @classmethod
    def from_settings(cls, settings: Settings) -> CookiePolicy:
        """Build the policy from Settings; max age tracks the refresh token expiry."""
        return cls(mode=settings.app_env, max_age_millis=settings.refresh_token_expire_seconds * 1000)

    @property
    def is_production(self) -> bool:
        return self.mode is DeploymentMode.production

    def cookie_name(self) -> str:
        return REFRESH_COOKIE_NAME

    def _base_descriptor(self) -> CookieDescriptor:
        return CookieDescriptor(
            name=self.cookie_name(),
            http_only=True,
            secure=self.is_production,
            same_site=SameSite.strict if self.is_production else SameSite.lax,
            path=REFRESH_COOKIE_PATH,
        )

    def build_set_descriptor(self) -> CookieDescriptor:
        """Descriptor used when issuing or rotating the refresh cookie."""
        return replace(self._base_descriptor(), max_age_millis=self.max_age_millis)

    def build_clear_descriptor(self) -> CookieDescriptor:
        """Descriptor used on logout: identical identity attributes, no Max-Age."""
        return self._base_descriptor()


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------


def set_refresh_cookie(response, token: str, policy: CookiePolicy) -> None:
    """Write the refresh token cookie on a FastAPI/Starlette response."""
    descriptor = policy.build_set_descriptor()
    response.set_cookie(
        descriptor.name,
        value=token,
        max_age=descriptor.max_age_seconds,
        path=descriptor.path,
        secure=descriptor.secure,
        httponly=descriptor.http_only,
        samesite=descriptor.same_site.value,
    )


def clear_refresh_cookie(response, policy: CookiePolicy) -> None:
    """Delete the refresh token cookie using the attributes it was set with.

    Starlette's delete_cookie emits Max-Age=0 plus an expired date, which the
    browser applies to the cookie whose name and path match.
    """
    descriptor = policy.build_clear_descriptor()
    response.delete_cookie(
        descriptor.name,
        path=descriptor.path,
        secure=descriptor.secure,
        httponly=descriptor.http_only,
        samesite=descriptor.same_site.value,
    )
