"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Stockroom Auth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() at
process assembly (api/main.py, main.py) and pass the Settings object down.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit injection: the auth core (auth/service.py) never calls
      get_settings() itself. It receives the Settings instance in its
      constructor so tests can inject a known secret.

  @model_validator(mode="after"): DEBUG-conditional JWT_SECRET logic. Dev mode
      generates a key with a warning, production mode refuses to start.

Security notes:
  [M6] JWT_SECRET shorter than 32 chars is rejected outright.
  [M7] Outside DEBUG mode, a missing JWT_SECRET is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("stockroom.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `jwt_secret` reads from JWT_SECRET, `app_env` reads from APP_ENV.
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
    # Deployment mode. Only the CORS policy and HSTS header depend on it.
    app_env: Literal["development", "production"] = "development"
    host: str = "0.0.0.0"  # nosec B104 -- container default, override with HOST
    port: int = 5000

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///stockroom_auth.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    jwt_secret: str = ""
    bcrypt_rounds: int = 12
    # Echo the default admin password in the POST /setup response.
    # Insecure first-run convenience; turn off once deployments script setup.
    setup_echo_password: bool = True

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins_production: list[str] = ["https://your-app.vercel.app"]
    cors_origins_development: list[str] = ["http://localhost:3000"]

    rate_limit: str = "100/15 minutes"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        return v.strip()

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        # bcrypt itself accepts 4..31; above 16 a single login takes seconds.
        if v < 4 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16")
        return v

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce JWT_SECRET policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            JWT_SECRET is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated JWT_SECRET. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Origins allowed for the current deployment mode."""
        return self.cors_origins_production if self.is_production else self.cors_origins_development


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
