"""
# Configuration Management Module

Typed configuration for the ACE mentorship API, built on **Pydantic Settings**.

## Loading Hierarchy

```
┌─────────────────────────────────────────────────────────────┐
│  1. Environment variables (highest priority)                │
│  2. ACE_MENTORSHIP_CONFIG_PATH (custom config file path)    │
│  3. .ace file in the project root                           │
│  4. .env file in the project root                           │
│  5. Defaults declared on `Settings` (lowest priority)       │
└─────────────────────────────────────────────────────────────┘
```

If no config file is found the application runs in environment-only mode.

## Groups

| Group | Purpose |
|-------|---------|
| **Server** | Host, port, debug flag, CORS origins |
| **Document store (MongoDB)** | Connection URL, database name, timeouts |
| **Relational store (SQLAlchemy)** | Async database URL, pool sizing |
| **Identity provider** | Project id, JWKS location, provisioning credentials |
| **Blob store** | Bucket and access token for submission images |
| **Session cookie** | Cookie name, lifetime and path |
| **Policies** | Audit/rate-limit failure policy, retention period, scoring |
| **Rate limits** | Per-operation fixed-window limits |

Secrets use `SecretStr` so they never appear in logs or reprs.

## Usage

```python
from ace_mentorship.config import settings

if settings.is_production:
    ...
```

The module-level `settings` instance is what the application factory hands to the
`ServiceContainer`; tests construct their own `Settings(...)` with overrides.
"""

import os
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
ACE_FILENAME: str = ".ace"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "ACE_MENTORSHIP_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determine the configuration file path.

    Order: `ACE_MENTORSHIP_CONFIG_PATH` (if set and the file exists), then `.ace` in the
    project root, then `.env` in the project root. Returns `None` for environment-only mode.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    ace_path: Path = PROJECT_ROOT / ACE_FILENAME
    if ace_path.exists():
        return str(ace_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=False)


class Settings(BaseSettings):
    """
    Application settings.

    Every field can be overridden by an environment variable of the same name. Validators
    reject empty store URLs and non-positive limits so a misconfigured deployment fails at
    startup instead of on the first request.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"
    METRICS_ENABLED: bool = True

    # MongoDB configuration (document store)
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "ace_mentorship"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Relational store configuration
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/ace_mentorship"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    # Identity provider configuration
    IDENTITY_PROJECT_ID: str = ""
    IDENTITY_JWKS_URL: str = (
        "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
    )
    IDENTITY_ISSUER: Optional[str] = None
    IDENTITY_API_KEY: SecretStr = SecretStr("")
    IDENTITY_ADMIN_TOKEN: SecretStr = SecretStr("")
    IDENTITY_API_BASE_URL: str = "https://identitytoolkit.googleapis.com/v1"
    IDENTITY_JWKS_CACHE_SECONDS: int = 3600
    IDENTITY_HTTP_TIMEOUT: float = 10.0

    # Blob store configuration
    STORAGE_BUCKET: str = ""
    STORAGE_ACCESS_TOKEN: SecretStr = SecretStr("")
    STORAGE_API_BASE_URL: str = "https://storage.googleapis.com"
    STORAGE_PUBLIC_BASE_URL: str = "https://storage.googleapis.com"
    STORAGE_HTTP_TIMEOUT: float = 30.0

    # Session cookie configuration
    SESSION_COOKIE_NAME: str = "firebase-session"
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 7  # 7 days
    SESSION_COOKIE_PATH: str = "/"

    # Policies
    AUDIT_FAIL_SILENTLY: bool = True
    RATE_LIMIT_FAIL_OPEN: bool = True
    MEDIA_RETENTION_DAYS: int = 30
    MAX_MENTEES_PER_PAIRING: int = 2
    SUBMISSION_BASE_POINTS: int = 10
    SUBMISSION_MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10 MiB
    SUBMISSION_ALLOWED_CONTENT_TYPES: str = "image/jpeg,image/png,image/webp,image/heic"
    SEMESTER_START_DATE: date = date(2026, 1, 1)
    SEMESTER_TIMEZONE: str = "America/Los_Angeles"
    AUDIT_LOG_DEFAULT_LIMIT: int = 100

    # Rate limits for sensitive operations
    SESSION_SYNC_RATE_LIMIT: int = 10
    SESSION_SYNC_RATE_WINDOW: int = 60
    IMPORT_RATE_LIMIT: int = 5
    IMPORT_RATE_WINDOW: int = 300
    APPLICATION_RATE_LIMIT: int = 5
    APPLICATION_RATE_WINDOW: int = 3600

    @field_validator("MONGODB_URL", "DATABASE_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v: Any, info: Any) -> Any:
        """Reject empty or whitespace-only store URLs."""
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .ace and not empty!")
        return v

    @field_validator(
        "MEDIA_RETENTION_DAYS",
        "MAX_MENTEES_PER_PAIRING",
        "SUBMISSION_MAX_UPLOAD_BYTES",
        "SESSION_COOKIE_MAX_AGE",
        "SESSION_SYNC_RATE_LIMIT",
        "SESSION_SYNC_RATE_WINDOW",
        "IMPORT_RATE_LIMIT",
        "IMPORT_RATE_WINDOW",
        "APPLICATION_RATE_LIMIT",
        "APPLICATION_RATE_WINDOW",
        "AUDIT_LOG_DEFAULT_LIMIT",
        mode="before",
    )
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        """
        Validates that numeric settings are positive integers.

        Raises:
            ValueError: If the value is not a positive integer.
        """
        value = int(v)
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @property
    def is_production(self) -> bool:
        """`True` when running with `DEBUG=False`; controls cookie `secure` and JSON logs."""
        return not self.DEBUG

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse the comma-separated `CORS_ORIGINS` into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def allowed_content_types(self) -> List[str]:
        """Parse `SUBMISSION_ALLOWED_CONTENT_TYPES` into a list of MIME types."""
        return [t.strip() for t in self.SUBMISSION_ALLOWED_CONTENT_TYPES.split(",") if t.strip()]

    @property
    def identity_issuer(self) -> str:
        """Expected `iss` claim; derived from the project id unless set explicitly."""
        if self.IDENTITY_ISSUER:
            return self.IDENTITY_ISSUER
        return f"https://securetoken.google.com/{self.IDENTITY_PROJECT_ID}"


# Global settings instance
settings: Settings = Settings()
