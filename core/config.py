"""
core/config.py -- Forum configuration, read once from the environment.

Every tunable lives on Settings: database URLs, session lifetimes and
backend, Argon2id costs, TOTP parameters, rate limits. Modules import
get_settings() rather than reading os.environ themselves.

get_settings() is cached with lru_cache, so the environment (and .env, if
present) is parsed on first use and every caller shares one instance. Tests
set environment variables before the first import, or call
get_settings.cache_clear().

Field names map to upper-case env vars: argon2_memory_cost <- ARGON2_MEMORY_COST,
session_backend <- SESSION_BACKEND, and so on.

SECRET_KEY signs the session cookie. Without DEBUG it must be set and at
least 32 characters long; a random per-process key would log everybody out
on each restart. With DEBUG a throwaway key is generated and logged as such.

Layer rule: core/ is the kernel. This module may not import from api/, auth/
or forum/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("forum.config")


class Settings(BaseSettings):
    """All forum settings. Every field has a default except the SECRET_KEY policy above."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    auth_db_url: str = "sqlite:///forum_auth.db"
    forum_db_url: str = "sqlite:///forum.db"

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_cookie_name: str = "session"
    # Absolute lifetime: a session dies this long after login regardless of use.
    session_expire_seconds: int = 3600
    # Idle lifetime: a session dies after this long without a request.
    session_idle_seconds: int = 1800
    session_backend: Literal["memory", "database"] = "memory"
    session_db_url: str = "sqlite:///forum_sessions.db"
    session_purge_interval_seconds: int = 300

    # ------------------------------------------------------------------
    # Password hashing (Argon2id)
    # ------------------------------------------------------------------

    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536  # KiB
    argon2_parallelism: int = 4

    # ------------------------------------------------------------------
    # Second factor
    # ------------------------------------------------------------------

    totp_issuer: str = "Forum"
    totp_period: int = 30
    totp_valid_window: int = 1

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    totp_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a throwaway key under DEBUG; otherwise require a real one."""
        if not self.secret_key:
            if not self.debug:
                raise ValueError("SECRET_KEY is required unless DEBUG=true (set it in the environment or .env).")
            self.secret_key = secrets.token_hex(32)
            logger.warning("SECRET_KEY not set; generated a temporary key. Sessions end on restart.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the shared Settings instance (parsed on first call)."""
    return Settings()
