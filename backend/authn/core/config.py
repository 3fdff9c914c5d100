"""Application configuration loaded from environment variables.

Settings for the database, the public host used in verification links,
session lifetimes, the credential verifier, email delivery and rate limits.
Uses pydantic-settings for validation and .env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "authn_dev_password"  # nosec B105

# Self-destruct deadline for an abandoned sign-in attempt (24 hours)
_DEFAULT_SESSION_TTL_SECONDS = 24 * 60 * 60

# Lifetime of an emailed verification link (1 hour)
_DEFAULT_VERIFICATION_TOKEN_TTL_SECONDS = 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "authn"
    database_user: str = "authn_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Full async URL; when set it replaces the URL built from the parts above
    database_url_override: str = ""

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8787

    # Public URL of this service, used to build verification links
    app_host: str = "http://localhost:8787"

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Sessions
    session_ttl_seconds: int = _DEFAULT_SESSION_TTL_SECONDS
    verification_token_ttl_seconds: int = _DEFAULT_VERIFICATION_TOKEN_TTL_SECONDS

    # Credential verification
    verifier_provider: Literal["passkey", "mock"] = "passkey"
    require_user_verification: bool = True

    # Email
    email_from: str = "noreply@authn.local"
    email_subject: str = "Verify your email to sign in"
    resend_api_key: SecretStr = SecretStr("")

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_challenge: str = "30/minute"
    rate_limit_proof: str = "30/minute"  # /register, /authenticate
    rate_limit_verify_link: str = "10/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Checks:
        - Session and verification token lifetimes must be positive
        - Database password must not be the default in production
        - APP_HOST must use https in production (links carry one-shot tokens)
        - The mock verifier is never allowed in production
        """
        if self.session_ttl_seconds <= 0:
            msg = (
                "SESSION_TTL_SECONDS must be positive. "
                f"Got: {self.session_ttl_seconds}"
            )
            raise ValueError(msg)
        if self.verification_token_ttl_seconds <= 0:
            msg = (
                "VERIFICATION_TOKEN_TTL_SECONDS must be positive. "
                f"Got: {self.verification_token_ttl_seconds}"
            )
            raise ValueError(msg)

        if self.environment == "production":
            if (
                not self.database_url_override
                and self.database_password == _INSECURE_DEFAULT_PASSWORD
            ):
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if not self.app_host.startswith("https://"):
                msg = (
                    "APP_HOST must be an https:// URL in production. "
                    f"Got: {self.app_host}"
                )
                raise ValueError(msg)

            if self.verifier_provider != "passkey":
                msg = (
                    "VERIFIER_PROVIDER must be 'passkey' in production. "
                    f"Got: {self.verifier_provider}"
                )
                raise ValueError(msg)

        return self


settings = Settings()
