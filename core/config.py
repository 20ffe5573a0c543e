"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the service happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, app_env -> APP_ENV).

  DeploymentMode: the production / non-production classification is an
      explicit enum value on Settings. Components that behave differently in
      production (the refresh cookie policy) receive the mode through Settings
      instead of reading process-wide state, so both modes can be built side
      by side in tests.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies
  on key entropy -- a short key weakens every issued token.

  In production mode a missing SECRET_KEY is a hard startup failure. Outside
  production a random key is generated with a warning; sessions then do not
  survive a restart.

Layer rule: core/ is the kernel. This module may not import from api/, auth/
or shop/.
"""

import logging
import secrets
from enum import Enum
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("foodorder.config")


class DeploymentMode(str, Enum):
    production = "production"
    development = "development"
    test = "test"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    app_env: DeploymentMode = DeploymentMode.development
    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Access tokens travel in the response body and Authorization header.
    access_token_expire_seconds: int = 15 * 60
    # Refresh tokens travel only in the refreshToken cookie. The cookie's
    # Max-Age is derived from the same 7 day window.
    refresh_token_expire_seconds: int = 7 * 24 * 60 * 60
    # Oldest session is evicted when a user logs in on one device too many.
    max_devices: int = 5

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # JSON lists in the environment, e.g. ALLOWED_HOSTS='["api.example.org"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.app_env is DeploymentMode.production

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Non-production (APP_ENV=development/test): auto-generate a random key
            with a warning. Sessions will not survive restart.

        Production (APP_ENV=production): refuse to start if SECRET_KEY is
            missing, even when DEBUG is set.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if not self.is_production:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set APP_ENV=development."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
