"""Tests for the pydantic-settings configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from sessionguard.config.settings import (
    LogLevel,
    SessionGuardSettings,
    StorageKeySettings,
    get_settings,
    reset_settings,
)
from sessionguard.exceptions import ConfigurationException
from sessionguard.models.auth import VerificationFailurePolicy


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Isolate every test from the real environment and any .env file."""
    monkeypatch.chdir(tmp_path)
    for name in [
        "SESSIONGUARD_API_BASE_URL",
        "SESSIONGUARD_REQUEST_TIMEOUT",
        "SESSIONGUARD_ON_VERIFICATION_FAILURE",
        "SESSIONGUARD_REQUIRE_JWT_FORMAT",
        "SESSIONGUARD_STORAGE_PATH",
        "SESSIONGUARD_LOG_LEVEL",
        "SESSIONGUARD_LOG_FORMAT",
        "SESSIONGUARD_REQUEST_RETRIES",
        "SESSIONGUARD_RETRY_DELAY",
        "SESSIONGUARD_KEYS__TOKEN_KEY",
    ]:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


class TestDefaults:

    def test_defaults(self):
        settings = SessionGuardSettings()

        assert settings.api_base_url == "http://localhost:4000/api/v1"
        assert settings.request_timeout is None
        assert settings.request_retries == 0
        assert settings.retry_delay == 0.5
        assert settings.on_verification_failure is VerificationFailurePolicy.FORCE_LOGOUT
        assert settings.require_jwt_format is False
        assert settings.storage_path is None
        assert settings.log_level is LogLevel.INFO
        assert settings.keys.token_key == "token"
        assert settings.keys.user_key == "userData"


class TestEnvironment:

    def test_values_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SESSIONGUARD_API_BASE_URL", "https://auth.example.com/api/v1/")
        monkeypatch.setenv("SESSIONGUARD_REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("SESSIONGUARD_ON_VERIFICATION_FAILURE", "keepSession")
        monkeypatch.setenv("SESSIONGUARD_STORAGE_PATH", str(tmp_path / "session.json"))
        monkeypatch.setenv("SESSIONGUARD_LOG_LEVEL", "debug")
        monkeypatch.setenv("SESSIONGUARD_KEYS__TOKEN_KEY", "auth_token")

        settings = SessionGuardSettings()

        assert settings.api_base_url == "https://auth.example.com/api/v1"
        assert settings.request_timeout == 2.5
        assert settings.on_verification_failure is VerificationFailurePolicy.KEEP_SESSION
        assert settings.storage_path == Path(tmp_path / "session.json")
        assert settings.log_level is LogLevel.DEBUG
        assert settings.keys.token_key == "auth_token"

    def test_dotenv_file_is_read(self, tmp_path):
        (tmp_path / ".env").write_text("SESSIONGUARD_REQUIRE_JWT_FORMAT=true\n", encoding="utf-8")
        assert SessionGuardSettings().require_jwt_format is True


class TestValidation:

    def test_rejects_non_http_url(self):
        with pytest.raises(ValidationError):
            SessionGuardSettings(api_base_url="ftp://auth.example.com")

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            SessionGuardSettings(request_timeout=0)

    def test_rejects_negative_retries(self):
        with pytest.raises(ValidationError):
            SessionGuardSettings(request_retries=-1)

    def test_rejects_unknown_policy(self):
        with pytest.raises(ValidationError):
            SessionGuardSettings(on_verification_failure="sometimes")

    def test_rejects_blank_key_name(self):
        with pytest.raises(ValidationError):
            StorageKeySettings(token_key="  ")


class TestSingleton:

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reset_settings(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("SESSIONGUARD_LOG_FORMAT", "console")
        reset_settings()

        second = get_settings()

        assert second is not first
        assert second.log_format == "console"

    def test_invalid_environment_raises_configuration_exception(self, monkeypatch):
        monkeypatch.setenv("SESSIONGUARD_LOG_FORMAT", "xml")
        with pytest.raises(ConfigurationException) as exc_info:
            get_settings()
        assert exc_info.value.details["error_type"] == "ValidationError"
