"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
# Supabase exposes a plain PostgreSQL URL, so it is covered by the postgres prefixes.
VALID_DATABASE_URL_PREFIXES = (
    "sqlite://",
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "postgres+psycopg2://",
)

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api"
    FRONTEND_URL: str = "http://localhost:5173"

    # SQLite for local dev; PostgreSQL (or Supabase Postgres) in prod
    DATABASE_URL: str = "sqlite:///./docvault.db"
    # Create tables on startup; turn off when schema is managed by alembic
    AUTO_CREATE_TABLES: bool = True

    # JWT authentication
    JWT_SECRET: SecretStr = SecretStr("change-me-in-production")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Password hashing and login lockout
    BCRYPT_ROUNDS: int = 12
    LOGIN_MAX_FAILED_ATTEMPTS: int = 5
    LOGIN_LOCKOUT_MINUTES: int = 30

    # File storage
    UPLOAD_DIR: str = "./uploads"
    MAX_FILE_SIZE: int = 5 * MIB
    MAX_FILES_PER_UPLOAD: int = 10

    # Chunked upload sessions: sessions older than max age are swept on an interval
    UPLOAD_SESSION_MAX_AGE_SECONDS: int = 3600
    UPLOAD_SWEEP_INTERVAL_SECONDS: int = 3600
    UPLOAD_SWEEP_ENABLED: bool = True

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.strip().startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a SQLite or PostgreSQL URL (e.g. sqlite:/// or postgresql://)"
            )
        return v.strip()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = (v or "").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @field_validator("API_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        s = (v or "").strip().rstrip("/")
        if s and not s.startswith("/"):
            raise ValueError("API_PREFIX must start with '/' (e.g. /api)")
        return s

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be set and non-empty")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("JWT_ALGORITHM must be set and non-empty")
        return v.strip()

    @field_validator("ACCESS_TOKEN_EXPIRE_MINUTES")
    @classmethod
    def validate_access_token_expire_minutes(cls, v: int) -> int:
        if v < 1 or v > 1440:
            raise ValueError(
                "ACCESS_TOKEN_EXPIRE_MINUTES must be between 1 and 1440 (1 min to 1 day)"
            )
        return v

    @field_validator("REFRESH_TOKEN_EXPIRE_DAYS")
    @classmethod
    def validate_refresh_token_expire_days(cls, v: int) -> int:
        if v < 1 or v > 90:
            raise ValueError("REFRESH_TOKEN_EXPIRE_DAYS must be between 1 and 90")
        return v

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16")
        return v

    @field_validator("LOGIN_MAX_FAILED_ATTEMPTS")
    @classmethod
    def validate_login_max_failed_attempts(cls, v: int) -> int:
        if v < 1 or v > 100:
            raise ValueError("LOGIN_MAX_FAILED_ATTEMPTS must be between 1 and 100")
        return v

    @field_validator("LOGIN_LOCKOUT_MINUTES")
    @classmethod
    def validate_login_lockout_minutes(cls, v: int) -> int:
        if v < 1 or v > 1440:
            raise ValueError("LOGIN_LOCKOUT_MINUTES must be between 1 and 1440")
        return v

    @field_validator("UPLOAD_DIR")
    @classmethod
    def validate_upload_dir(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("UPLOAD_DIR must be set and non-empty")
        return v.strip()

    @field_validator("MAX_FILE_SIZE")
    @classmethod
    def validate_max_file_size(cls, v: int) -> int:
        if v < 1 or v > 1024 * MIB:
            raise ValueError("MAX_FILE_SIZE must be between 1 byte and 1 GiB")
        return v

    @field_validator("MAX_FILES_PER_UPLOAD")
    @classmethod
    def validate_max_files_per_upload(cls, v: int) -> int:
        if v < 1 or v > 100:
            raise ValueError("MAX_FILES_PER_UPLOAD must be between 1 and 100")
        return v

    @field_validator("UPLOAD_SESSION_MAX_AGE_SECONDS", "UPLOAD_SWEEP_INTERVAL_SECONDS")
    @classmethod
    def validate_upload_intervals(cls, v: int) -> int:
        if v < 1 or v > 86400:
            raise ValueError("Upload session intervals must be between 1 second and 1 day")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()

