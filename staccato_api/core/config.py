"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Firebase credentials can be given as individual
variables, as a full service account JSON string, or as a path to the
JSON key file.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_VALID_ENVIRONMENTS = ("development", "staging", "production")
_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    All settings are optional with defaults. validate_settings rejects
    unknown environment and log level values and requires an emulator
    host when the Firestore emulator is enabled.
    """

    # App
    app_name: str = "staccato-api"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Firebase service account: individual fields (FIREBASE_PROJECT_ID, ...)
    firebase_project_id: str | None = None
    firebase_client_email: str | None = None
    firebase_private_key: SecretStr | None = None  # PEM, "\n" escapes allowed
    firebase_private_key_id: str | None = None
    firebase_token_uri: str = "https://oauth2.googleapis.com/token"

    # Or the full key: JSON string (e.g. on Cloud Run) or path to the JSON file
    firebase_service_account_key: SecretStr | None = None
    firebase_service_account_path: str | None = None

    # Firestore emulator (local development)
    use_firebase_emulator: bool = False
    firestore_emulator_host: str | None = None  # e.g. localhost:8081

    # Firestore REST client
    firestore_timeout_seconds: float = 30.0
    token_refresh_margin_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate environment, log level and emulator configuration."""
        if self.environment not in _VALID_ENVIRONMENTS:
            raise ValueError(
                f"ENVIRONMENT must be one of {', '.join(_VALID_ENVIRONMENTS)}, "
                f"got: {self.environment!r}"
            )
        self.log_level = self.log_level.upper()
        if self.log_level not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(_VALID_LOG_LEVELS)}, "
                f"got: {self.log_level!r}"
            )
        if self.use_firebase_emulator and not self.firestore_emulator_host:
            raise ValueError(
                "FIRESTORE_EMULATOR_HOST is required when USE_FIREBASE_EMULATOR is true"
            )
        if self.firestore_timeout_seconds <= 0:
            raise ValueError("FIRESTORE_TIMEOUT_SECONDS must be positive")
        if self.token_refresh_margin_seconds < 0:
            raise ValueError("TOKEN_REFRESH_MARGIN_SECONDS must not be negative")
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
