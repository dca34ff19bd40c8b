"""
Unit tests for Settings module.

Tests environment and .env loading plus normalization of Datadog values.
"""

import pytest
from pydantic import ValidationError

from ferry.config.settings import Settings, get_settings


@pytest.mark.unit
class TestSettingsDefaults:
    """Test default values."""

    def test_defaults(self):
        settings = Settings()

        assert settings.log_level == "INFO"
        assert settings.datadog_api_key == ""
        assert settings.datadog_site == "datadoghq.com"
        assert settings.incidentio_webhook_token is None
        assert settings.http_timeout == 30.0
        assert settings.monitor_page_size == 1000
        assert settings.datadog_api_url == "https://api.datadoghq.com"


@pytest.mark.unit
class TestSettingsEnvironment:
    """Test loading from environment variables and .env files."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATADOG_API_KEY", "env-key")
        monkeypatch.setenv("DATADOG_APP_KEY", "env-app")
        monkeypatch.setenv("INCIDENTIO_WEBHOOK_TOKEN", "env-token")
        monkeypatch.setenv("MONITOR_PAGE_SIZE", "200")

        settings = Settings()

        assert settings.datadog_api_key == "env-key"
        assert settings.datadog_app_key == "env-app"
        assert settings.incidentio_webhook_token == "env-token"
        assert settings.monitor_page_size == 200

    def test_reads_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("DATADOG_API_KEY=file-key\nDATADOG_SITE=datadoghq.eu\nUNRELATED=1\n")

        settings = Settings()

        assert settings.datadog_api_key == "file-key"
        assert settings.datadog_site == "datadoghq.eu"

    def test_environment_overrides_dotenv(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("DATADOG_API_KEY=file-key\n")
        monkeypatch.setenv("DATADOG_API_KEY", "env-key")

        assert Settings().datadog_api_key == "env-key"

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("DATADOG_API_KEY", "first")
        first = get_settings()
        monkeypatch.setenv("DATADOG_API_KEY", "second")

        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings().datadog_api_key == "second"


@pytest.mark.unit
class TestSettingsValidation:
    """Test value normalization and validation."""

    def test_api_keys_are_stripped(self):
        settings = Settings(datadog_api_key="  key\n", datadog_app_key="\tapp ")

        assert settings.datadog_api_key == "key"
        assert settings.datadog_app_key == "app"

    @pytest.mark.parametrize("site", [
        "datadoghq.eu",
        "https://api.datadoghq.eu",
        "https://api.datadoghq.eu/",
        "api.datadoghq.eu",
        " http://datadoghq.eu ",
    ])
    def test_site_is_normalized(self, site):
        settings = Settings(datadog_site=site)

        assert settings.datadog_site == "datadoghq.eu"
        assert settings.datadog_api_url == "https://api.datadoghq.eu"

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(monitor_page_size=0)
