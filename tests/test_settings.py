import pytest
from pydantic import ValidationError

from mindbridge.app.core.config import Settings


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("RATE_LIMIT_ENABLED", raising=False)

    settings = Settings(_env_file=None)
    assert settings.environment == "production"
    assert settings.is_production is True
    assert settings.rate_limit_enabled is True
    assert settings.rate_limit_requests_per_window == 100
    assert settings.rate_limit_window_ms == 60_000
    assert settings.rate_limit_fail_closed is False


def test_environment_from_env(monkeypatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("RATE_LIMIT_FAIL_CLOSED", "true")

    settings = Settings(_env_file=None)
    assert settings.environment == "development"
    assert settings.is_production is False
    assert settings.rate_limit_fail_closed is True


def test_unknown_environment_rejected(monkeypatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.parametrize(
    "name",
    ["RATE_LIMIT_REQUESTS_PER_WINDOW", "RATE_LIMIT_WINDOW_MS"],
)
def test_rate_limit_values_must_be_positive(monkeypatch, name: str) -> None:
    monkeypatch.setenv(name, "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_sweep_interval_must_be_positive(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_SWEEP_INTERVAL_SECONDS", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_database_url_alias(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/mindbridge")
    settings = Settings(_env_file=None)
    assert settings.database_url == "postgresql+asyncpg://u:p@db/mindbridge"


def test_cors_origins_accepts_host_without_json(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "mindbridge.ng")

    settings = Settings(_env_file=None)
    assert settings.cors_origins == ["http://mindbridge.ng", "https://mindbridge.ng"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:3000"]', ["http://localhost:3000"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
        ("https://a.ng, https://b.ng", ["https://a.ng", "https://b.ng"]),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected
