import json
import re
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma/space separated values.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            candidates = [part]
        else:
            # Browsers include the scheme in the Origin header.
            candidates = [f"http://{part}", f"https://{part}"]
        for origin in candidates:
            if origin not in origins:
                origins.append(origin)
    return origins


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # development | test | production
    environment: Literal["development", "test", "production"] = "production"

    # Debug mode - enables detailed error responses
    debug: bool = False

    app_version: str = "1.0.0"

    database_url: str = Field(
        default="sqlite+aiosqlite:///./mindbridge.db",
        validation_alias="DATABASE_URL",
    )
    db_pool_size: int = 10
    db_max_overflow: int = 5

    # Auth tokens
    jwt_secret: str = "mindbridge-dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    session_cookie_name: str = "mindbridge_session"

    # Optional bootstrap admin account, created on startup when both are set
    admin_email: str = ""
    admin_password: str = ""

    # Rate limiting settings (fallback policy for /api/ routes)
    rate_limit_enabled: bool = True
    rate_limit_requests_per_window: int = 100
    rate_limit_window_ms: int = 60_000
    rate_limit_message: str = "Rate limit exceeded. Please try again later."
    rate_limit_fail_closed: bool = (
        False  # If True, reject requests when the limiter itself errors
    )
    rate_limit_sweep_interval_seconds: float = 60.0

    # Health check
    health_cache_seconds: float = 30.0
    health_db_timeout_seconds: float = 1.0

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("rate_limit_requests_per_window", "rate_limit_window_ms")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator(
        "rate_limit_sweep_interval_seconds",
        "health_cache_seconds",
        "health_db_timeout_seconds",
    )
    @classmethod
    def validate_interval_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Interval values must be positive")
        return v

    @field_validator("access_token_expire_minutes")
    @classmethod
    def validate_token_lifetime(cls, v: int) -> int:
        if v < 1:
            raise ValueError("access_token_expire_minutes must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
