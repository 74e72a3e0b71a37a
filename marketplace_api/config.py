"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This keeps secrets (the JWT signing key, the SendGrid API key)
out of source code.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from marketplace_api.config import settings
    print(settings.ACCESS_TOKEN_EXPIRE_MINUTES)

The security primitives (PasswordHasher, TokenIssuer, ResetTokenGenerator)
never read this module directly. They receive the values they need when
they are constructed, which keeps them testable with fixed secrets and clocks.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


# Environments in which the auth cookie may be sent over plain HTTP
INSECURE_COOKIE_ENVIRONMENTS = frozenset({"development", "local", "test"})


class Settings(BaseSettings):
    """
    Central configuration for the Service Marketplace API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT bearer tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Service Marketplace API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local development; swap to a PostgreSQL (asyncpg) URL in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/marketplace.db"

    # --- Authentication ---
    # REQUIRED: No default, forces the operator to set a real secret.
    # Rotating it invalidates every outstanding bearer token.
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    AUTH_COOKIE_NAME: str = "jwt"

    # bcrypt work factor (2^rounds iterations)
    BCRYPT_ROUNDS: int = 12

    # --- Password reset ---
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = 10
    # The reset link points at the frontend, which PATCHes /resetPassword/{token}
    FRONTEND_URL: str = "http://localhost:3000"

    # --- Email (SendGrid) ---
    # When either value is missing, emails are only logged (recipient + subject)
    SENDGRID_API_KEY: str | None = None
    MAIL_FROM_EMAIL: str | None = None

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @property
    def secure_cookies(self) -> bool:
        """Whether the auth cookie must carry the Secure flag."""
        return self.ENVIRONMENT.lower() not in INSECURE_COOKIE_ENVIRONMENTS


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
