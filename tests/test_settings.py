# tests/test_settings.py
"""Tests for settings loading."""

import logging

import pytest

from waypost.core.settings import Settings, load_settings


def test_load_settings_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("PLATFORM_URL", "http://platform.local")
    monkeypatch.setenv("PORT", "4000")

    settings = load_settings()

    assert settings.platform_url == "http://platform.local"
    assert settings.port == 4000
    assert settings.avatar_max_bytes == 5 * 1024 * 1024


def test_default_port_is_3001(monkeypatch) -> None:
    monkeypatch.delenv("PORT", raising=False)
    assert load_settings().port == 3001


@pytest.mark.parametrize(
    "variable",
    ["PLATFORM_URL", "PLATFORM_SERVICE_KEY", "PLATFORM_PUBLIC_KEY"],
)
def test_missing_platform_variable_exits(monkeypatch, caplog, variable) -> None:
    monkeypatch.delenv(variable, raising=False)
    monkeypatch.setitem(Settings.model_config, "env_file", None)

    with caplog.at_level(logging.ERROR), pytest.raises(SystemExit) as exc_info:
        load_settings()

    assert exc_info.value.code == 1
    assert "Missing platform environment variables" in caplog.text
    assert variable in caplog.text
