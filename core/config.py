"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for QuizDesk happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead,
or receive a Settings instance from create_app().

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. A missing SECRET_KEY is a fatal misconfiguration: the
      process refuses to start rather than signing tokens with a guessable key.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
  relies on key entropy -- a short key weakens every issued token.

  CORS origins are deployment configuration. Nothing is hard-coded here.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or quiz/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("quizdesk.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field except secret_key has a default. Tests construct Settings(...)
    directly with explicit values and pass the instance to create_app().
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured"; the validator below
    # raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///quizdesk.db"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Tokens live for 24 hours and are never revoked server-side.
    token_expire_seconds: int = 86400

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    # Comma-separated list, e.g. "https://quiz.example.com,http://localhost:3000"
    cors_origins: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to build a Settings object without a usable signing secret.

        Missing key: startup fails. Tokens signed with an ephemeral key would
            silently invalidate every session on restart.

        Short key (< 32 chars): startup fails.
        """
        if not self.secret_key:
            raise ValueError(
                "SECRET_KEY is required. Set SECRET_KEY in your environment or .env file."
            )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    This is the official FastAPI pattern for config (see FastAPI docs /advanced/settings/).

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
