"""
Tests for configuration validation
"""
import pytest
from pydantic import ValidationError

from attendance_engine.core.config import Settings


def _settings(**overrides):
    values = {"DATABASE_URL": "postgresql://test", "JWT_SECRET_KEY": "test-key"}
    values.update(overrides)
    return Settings(**values)


def test_prod_settings_rejects_wildcard_origins():
    settings = _settings(JWT_SECRET_KEY="a" * 32, APP_ENV="prod", ALLOWED_ORIGINS="*")

    with pytest.raises(ValueError, match="ALLOWED_ORIGINS"):
        settings.validate_production()


def test_prod_settings_rejects_short_jwt_secret():
    settings = _settings(JWT_SECRET_KEY="short", APP_ENV="prod", ALLOWED_ORIGINS="https://example.com")

    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        settings.validate_production()


def test_local_settings_allows_wildcard_origins():
    settings = _settings(APP_ENV="local", ALLOWED_ORIGINS="*")

    settings.validate_production()  # no-op outside prod
    assert settings.get_allowed_origins_list() == ["*"]


def test_get_allowed_origins_list():
    settings = _settings(ALLOWED_ORIGINS="https://example.com, https://app.example.com")
    assert settings.get_allowed_origins_list() == ["https://example.com", "https://app.example.com"]


def test_unknown_app_env_rejected():
    with pytest.raises(ValidationError):
        _settings(APP_ENV="dev")


def test_org_timezone_must_exist():
    assert _settings(ORG_TIMEZONE="Europe/Berlin").ORG_TIMEZONE == "Europe/Berlin"
    with pytest.raises(ValidationError):
        _settings(ORG_TIMEZONE="Mars/Olympus_Mons")


def test_weekend_days_normalized_and_bounded():
    assert _settings(DEFAULT_WEEKEND_DAYS=[7, 6, 6]).DEFAULT_WEEKEND_DAYS == [6, 7]
    with pytest.raises(ValidationError):
        _settings(DEFAULT_WEEKEND_DAYS=[0])


def test_finalization_defaults():
    settings = _settings()
    assert settings.FINALIZATION_BUFFER_MINUTES == 30
    assert settings.FINALIZATION_MAX_WORKERS == 1
    assert settings.EVENT_TIME_TOLERANCE_SECONDS == 0
    with pytest.raises(ValidationError):
        _settings(FINALIZATION_MAX_WORKERS=0)
