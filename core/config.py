"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TenantGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Dev mode generates missing signing secrets with a warning,
      production mode refuses to start without them.

Security notes:
  [K1] Signing secrets shorter than 32 chars are rejected. JWT HS256 signing
       relies on key entropy.

  [K2] The access and refresh secrets must differ, otherwise an access token
       would verify as a refresh token if the type claim were ever ignored.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
tenants/, or accounts/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tenantgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'tenantgate.db'}"


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

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Secret vault
    # ------------------------------------------------------------------

    # bcrypt work factor. 10 matches the cost the stored hashes were
    # generated with; tests lower it to 4 for speed.
    bcrypt_rounds: int = 10

    # ------------------------------------------------------------------
    # Token issuer -- access and refresh tokens have independent keys
    # ------------------------------------------------------------------

    # Empty string is the "not configured" sentinel. The validator below
    # either generates a dev key or raises.
    access_token_secret: str = ""
    access_token_expire_seconds: int = 900
    refresh_token_secret: str = ""
    refresh_token_expire_seconds: int = 7 * 24 * 3600

    # Expired refresh tokens are dropped from an account's set on every write
    # to that set, and swept globally on this period.
    purge_expired_refresh_tokens: bool = True
    refresh_token_sweep_seconds: int = 6 * 3600

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    auth_rate_limit: str = "10 per 15 minutes"
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Owner access -- the /owners/... routes
    # ------------------------------------------------------------------

    # Deployment-level credential held by the owner-facing backend. It can
    # recover a revoked project secret, so treat it like a signing key.
    # Empty disables the owner routes (every call is 401).
    owner_api_key: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_settings(self) -> "Settings":
        """Enforce the signing-key policy [K1] [K2].

        Dev mode (DEBUG=true): auto-generate any missing secret with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.
        """
        for field in ("access_token_secret", "refresh_token_secret"):
            value = getattr(self, field)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                setattr(self, field, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", field.upper())
            elif len(value) < 32:
                raise ValueError(f"{field.upper()} must be at least 32 characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        if self.access_token_expire_seconds <= 0 or self.refresh_token_expire_seconds <= 0:
            raise ValueError("Token expiry values must be positive.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.owner_api_key and len(self.owner_api_key) < 32:
            raise ValueError("OWNER_API_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
