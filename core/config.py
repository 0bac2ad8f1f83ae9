"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for OAuthDash happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. gh_basic_client_id -> GH_BASIC_CLIENT_ID).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode (DEBUG=true) tolerates missing secrets with a warning;
      production mode refuses to start.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("oauthdash.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Signs the session cookie. Empty string is the "not configured" sentinel;
    # the validator either generates a dev key or raises.
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_max_age: int = 14 * 24 * 60 * 60  # two weeks, Starlette's default

    # ------------------------------------------------------------------
    # GitHub OAuth app
    # ------------------------------------------------------------------

    gh_basic_client_id: str = ""
    gh_basic_secret_id: str = ""
    github_url: str = "https://github.com"
    github_api_url: str = "https://api.github.com"
    oauth_scope: str = "user:email"
    http_timeout: float = 10.0

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    # Empty means the default SQLite file next to auth/store.py.
    database_url: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the startup secret policy.

        SECRET_KEY: auto-generated in dev mode (sessions will not survive a
            restart), required in production, and at least 32 characters.

        GH_BASIC_CLIENT_ID / GH_BASIC_SECRET_ID: a missing pair is a
            misconfiguration. Production refuses to start; dev mode logs a
            warning so the app can still be exercised locally.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")

        if not (self.gh_basic_client_id and self.gh_basic_secret_id):
            if not self.debug:
                raise ValueError("GH_BASIC_CLIENT_ID and GH_BASIC_SECRET_ID must both be set.")
            logger.warning("GitHub OAuth credentials are not configured; login will fail.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
