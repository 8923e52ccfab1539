from __future__ import annotations

from typing import Iterator

import pytest

from postcache import config
from postcache.domain.enums import Environment


@pytest.fixture()
def env(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    for name in ("APP_ENV", "API_BASE_URL", "OUTPUT_DIR", "REQUEST_TIMEOUT_SEC", "LOG_ENABLED"):
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    monkeypatch.undo()
    config.reload_settings()
    config.reset_output_directories()


def test_environment_parse_aliases() -> None:
    assert Environment.parse("dev") is Environment.DEVELOPMENT
    assert Environment.parse(" Stage ") is Environment.STAGING
    assert Environment.parse("PRODUCTION") is Environment.PRODUCTION
    assert Environment.parse("qa") is None
    assert Environment.parse(None) is None


def test_profiles_per_environment(env: pytest.MonkeyPatch) -> None:
    config.reload_settings()

    dev = config.get_config(Environment.DEVELOPMENT)
    assert dev.output_directory == "./posts"
    assert dev.request_timeout_sec == 30.0
    assert "http://localhost:5173" in dev.cors_allowed_origins

    staging = config.get_config(Environment.STAGING)
    assert staging.output_directory == "./posts_staging"
    assert staging.request_timeout_sec == 20.0

    prod = config.get_profile(Environment.PRODUCTION)
    assert prod.logging_enabled is False
    assert prod.request_timeout_sec == 10.0
    assert dev.api_base_url == "https://jsonplaceholder.typicode.com"


def test_settings_override_profile(env: pytest.MonkeyPatch) -> None:
    env.setenv("APP_ENV", "prod")
    env.setenv("API_BASE_URL", "http://localhost:9999")
    env.setenv("REQUEST_TIMEOUT_SEC", "2.5")
    env.setenv("LOG_ENABLED", "true")
    config.reload_settings()

    cfg = config.get_config()
    assert cfg.environment is Environment.PRODUCTION
    assert cfg.api_base_url == "http://localhost:9999"
    assert cfg.request_timeout_sec == 2.5
    assert cfg.logging_enabled is True


def test_logging_falls_back_to_profile(env: pytest.MonkeyPatch) -> None:
    env.setenv("APP_ENV", "production")
    config.reload_settings()
    assert config.settings.logging_enabled() is False


def test_runtime_output_directory_override(env: pytest.MonkeyPatch) -> None:
    config.reload_settings()
    assert config.update_output_directory(Environment.STAGING, "/tmp/custom") == "/tmp/custom"

    assert config.get_config(Environment.STAGING).output_directory == "/tmp/custom"
    assert config.get_config(Environment.DEVELOPMENT).output_directory == "./posts"

    config.reset_output_directories()
    assert config.get_config(Environment.STAGING).output_directory == "./posts_staging"
