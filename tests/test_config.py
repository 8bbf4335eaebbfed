"""Tests for settings and logging setup."""

import dataclasses
import logging

import pytest

from shopapi.api import create_app
from shopapi.config import LOG_FORMAT, Settings, configure_logging


@pytest.fixture
def clean_env(monkeypatch):
    for name in Settings().to_env():
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults_without_env(self, clean_env):
        assert Settings.from_env() == Settings()

    def test_env_round_trip(self, clean_env):
        settings = Settings(
            host="0.0.0.0",
            port=9001,
            api_prefix="/v1",
            cors_origins=["http://a.test", "http://b.test"],
            seed=False,
            log_level="warning",
        )
        for name, value in settings.to_env().items():
            clean_env.setenv(name, value)

        assert Settings.from_env() == dataclasses.replace(settings, log_level="WARNING")

    @pytest.mark.parametrize("raw,expected", [("yes", True), ("0", False), ("off", False)])
    def test_seed_flag_parsing(self, clean_env, raw, expected):
        clean_env.setenv("SHOPAPI_SEED", raw)
        assert Settings.from_env().seed is expected


class TestConfigureLogging:
    def test_passes_level_and_format(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        configure_logging("debug")

        assert calls == [{"level": "DEBUG", "format": LOG_FORMAT}]

    def test_create_app_configures_logging(self, monkeypatch):
        levels = []
        monkeypatch.setattr("shopapi.api.configure_logging", levels.append)

        create_app(Settings(seed=False, log_level="WARNING"))

        assert levels == ["WARNING"]
