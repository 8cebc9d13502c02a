"""Tests for environment-based settings."""

import pytest
from pydantic import ValidationError

from solarizer.config import Settings

REQUIRED_ENV = {
    "SOLAR_WEB_PV_SYSTEM_ID": "0a1b2c3d-4711",
    "INFLUX_URL": "http://influx:8086",
    "INFLUX_TOKEN": "influx-token",
    "INFLUX_ORG": "home",
    "INFLUX_BUCKET": "solar",
    "API_TOKENS": "abc, def,,",
}


@pytest.fixture
def env(monkeypatch):
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)
    for key in ("SOLAR_WEB_AUTH_COOKIE", "SOLAR_WEB_AUTH_COOKIE_FILE", "FAST_INTERVAL"):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(env):
    settings = Settings(_env_file=None)

    assert settings.pv_system_id == "0a1b2c3d-4711"
    assert settings.auth_cookie is None
    assert settings.auth_cookie_file == "/tmp/solarizer/authcookie"
    assert settings.fast_interval == 15
    assert settings.slow_interval == 300
    assert settings.breaker_min_requests == 3
    assert settings.breaker_failure_ratio == 0.6
    assert settings.api_port == 8080


def test_api_tokens_are_split_and_trimmed(env):
    assert Settings(_env_file=None).api_tokens == {"abc", "def"}


def test_overrides(env):
    env.setenv("SOLAR_WEB_AUTH_COOKIE", "CfDJ8")
    env.setenv("SOLAR_WEB_AUTH_COOKIE_FILE", "/data/cookie")
    env.setenv("FAST_INTERVAL", "5")

    settings = Settings(_env_file=None)

    assert settings.auth_cookie == "CfDJ8"
    assert settings.auth_cookie_file == "/data/cookie"
    assert settings.fast_interval == 5


@pytest.mark.parametrize("missing", ["SOLAR_WEB_PV_SYSTEM_ID", "INFLUX_TOKEN", "API_TOKENS"])
def test_missing_required_value_fails(env, missing):
    env.delenv(missing)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
