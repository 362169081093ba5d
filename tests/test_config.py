import pytest
from pydantic import ValidationError

from config import (
    DevelopmentSettings,
    ProductionSettings,
    Settings,
    TestingSettings,
    get_settings,
    get_settings_for_environment,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("PAYMENTS_WORKERS", "PAYMENTS_QUEUE_SIZE", "PAYMENTS_LOG_LEVEL", "PAYMENTS_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Test configuration loading."""

    def test_defaults(self):
        settings = Settings()

        assert settings.workers == 1
        assert settings.queue_size == 1024
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"
        assert settings.log_rejections is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PAYMENTS_WORKERS", "4")
        monkeypatch.setenv("payments_log_format", "text")

        settings = Settings()

        assert settings.workers == 4
        assert settings.log_format == "text"

    @pytest.mark.parametrize("name,value", [
        ("PAYMENTS_WORKERS", "0"),
        ("PAYMENTS_QUEUE_SIZE", "-1"),
        ("PAYMENTS_LOG_FORMAT", "xml"),
    ])
    def test_invalid_values_rejected(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            Settings()

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    @pytest.mark.parametrize("env,expected", [
        ("development", DevelopmentSettings),
        ("Production", ProductionSettings),
        ("testing", TestingSettings),
        ("staging", Settings),
    ])
    def test_settings_for_environment(self, env, expected):
        assert type(get_settings_for_environment(env)) is expected

    def test_testing_profile(self):
        settings = TestingSettings()

        assert settings.log_level == "WARNING"
        assert settings.log_rejections is False
        assert settings.queue_size == 8
