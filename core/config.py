"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AuthGate happen here. No module should
call os.getenv() or os.environ.get() directly.

get_settings() is an lru_cache singleton, but it is only called at process
start (asgi.py, main.py). Everything below that receives the Settings
instance explicitly: create_app(settings) builds TokenService(settings) and
AuthService(..., settings=settings). Business logic never reaches for
ambient configuration.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key weakens every issued token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure. In debug mode a random key is generated with a warning;
  tokens will not survive a restart.

  The secret is never logged, not even at DEBUG level.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

ROLES: tuple[str, ...] = ("user", "admin")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. Field names map to upper-cased
    env var names (secret_key -> SECRET_KEY).
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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./authgate_users.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Tokens live for one day; expiry is the only deactivation mechanism.
    token_expire_seconds: int = 86400
    bcrypt_rounds: int = 10
    default_role: str = "user"
    # Open question pending product clarification: any client may currently
    # self-assign a role at registration. False restricts that to admins.
    self_assign_role: bool = True

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    auth_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        """bcrypt.gensalt() only accepts log rounds in 4..31."""
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return value

    @field_validator("default_role")
    @classmethod
    def validate_default_role(cls, value: str) -> str:
        if value not in ROLES:
            raise ValueError(f"DEFAULT_ROLE must be one of {ROLES}.")
        return value

    @field_validator("token_expire_seconds")
    @classmethod
    def validate_token_expiry(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
        Production mode: refuse to start if SECRET_KEY is missing.
        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Issued tokens will not survive a restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings singleton.

    Call this once at startup and pass the result down. In tests, construct
    Settings(...) directly instead, or call get_settings.cache_clear() after
    changing the environment.
    """
    return Settings()
