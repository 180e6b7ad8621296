import pytest

from project_sync.core.config import Settings, clear_settings_cache, get_settings
from project_sync.core.enums import ClientSide
from project_sync.core.exceptions import ConfigurationError


def test_credentials_for_each_side(settings):
    source = settings.credentials_for(ClientSide.SOURCE)
    target = settings.credentials_for(ClientSide.TARGET)

    assert source.project_key == "source-project"
    assert source.client_secret == "source-secret"
    assert target.client_id == "target-id"
    assert target.scopes is None


def test_missing_credentials_are_listed():
    settings = Settings(_env_file=None, SOURCE_PROJECT_KEY="source-project")

    with pytest.raises(ConfigurationError) as exc_info:
        settings.credentials_for(ClientSide.SOURCE)

    assert "SOURCE_CLIENT_ID" in str(exc_info.value)
    assert "SOURCE_CLIENT_SECRET" in str(exc_info.value)
    assert "SOURCE_PROJECT_KEY" not in str(exc_info.value)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SYNC_PAGE_SIZE", "250")
    monkeypatch.setenv("RUNNER_NAME", "nightly")
    monkeypatch.setenv("TARGET_SCOPES", "manage_products:target-project")

    settings = Settings(_env_file=None)

    assert settings.SYNC_PAGE_SIZE == 250
    assert settings.RUNNER_NAME == "nightly"
    assert settings.TARGET_SCOPES == "manage_products:target-project"


def test_page_size_is_bounded(monkeypatch):
    monkeypatch.setenv("SYNC_PAGE_SIZE", "1000")
    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_get_settings_is_cached():
    clear_settings_cache()
    assert get_settings() is get_settings()
    clear_settings_cache()


def test_clock_skew_defaults_to_a_minute():
    assert Settings(_env_file=None).SYNC_CLOCK_SKEW_SECONDS == 60.0
