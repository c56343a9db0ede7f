"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the chapter portal happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_ttl_hours -> SESSION_TTL_HOURS).

  @model_validator(mode="after"): Cross-field checks that need every value
      resolved first (bootstrap credentials come as a pair).

Security notes:
  BOOTSTRAP_ADMIN_PASSWORD is only read on first startup when the user table
  is empty. It is hashed before it reaches the store and never logged.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
chapters/, or editor/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("chapterportal.config")


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

    # DEBUG=true also appends the underlying error text to server-error
    # envelopes. Leave off in production.
    debug: bool = False

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    # "sql" persists users and sessions through SQLAlchemy; "memory" keeps
    # them in process (single worker, lost on restart).
    auth_backend: str = "sql"
    # Empty string means "use the store's default SQLite file".
    auth_db_url: str = ""
    chapters_db_url: str = ""

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    # Fixed window from login. Not refreshed by activity.
    session_ttl_hours: int = 24

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    auth_rate_limit: str = "30/minute"

    # ------------------------------------------------------------------
    # Bootstrap (first-run admin)
    # ------------------------------------------------------------------

    bootstrap_admin_username: str = ""
    bootstrap_admin_password: str = ""
    bootstrap_admin_email: str = ""

    # ------------------------------------------------------------------
    # Editor client / browser origins
    # ------------------------------------------------------------------

    portal_api_url: str = "http://localhost:8000"
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Reject configurations that would fail later in a confusing way.

        A bootstrap username without a password would seed an admin nobody
        can log in as. A zero or negative TTL would expire every session at
        the moment it is created.
        """
        if self.auth_backend not in ("sql", "memory"):
            raise ValueError("AUTH_BACKEND must be 'sql' or 'memory'.")
        if self.bootstrap_admin_username and not self.bootstrap_admin_password:
            raise ValueError("BOOTSTRAP_ADMIN_PASSWORD is required when BOOTSTRAP_ADMIN_USERNAME is set.")
        if self.session_ttl_hours <= 0:
            raise ValueError("SESSION_TTL_HOURS must be a positive number of hours.")
        if self.auth_backend == "memory" and not self.debug:
            logger.warning("AUTH_BACKEND=memory: sessions and users will not survive a restart.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
