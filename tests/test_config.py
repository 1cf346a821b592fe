import logging

import pytest
from pydantic import ValidationError

from moodpk.config import (
    AppConfig,
    LoggingConfig,
    configure_logging,
    get_config,
    load_config_from_env,
)

ENV_VARS = (
    "MOODPK_CACHE_MAX_SIZE",
    "MOODPK_CACHE_TTL_SECONDS",
    "MOODPK_CACHE_SWEEP_SECONDS",
    "MOODPK_FORMULA_VERSION",
    "MOODPK_BODY_WEIGHT_KG",
    "MOODPK_CURVE_POINTS",
    "MOODPK_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_defaults():
    config = load_config_from_env()
    assert config.cache.max_size == 500
    assert config.cache.ttl_seconds == 300.0
    assert config.engine.default_body_weight_kg == 70.0
    assert config.logging.level == "INFO"
    assert config == AppConfig()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MOODPK_CACHE_MAX_SIZE", "42")
    monkeypatch.setenv("MOODPK_CACHE_TTL_SECONDS", "12.5")
    monkeypatch.setenv("MOODPK_BODY_WEIGHT_KG", "82")
    monkeypatch.setenv("MOODPK_LOG_LEVEL", " debug ")

    config = load_config_from_env()
    assert config.cache.max_size == 42
    assert config.cache.ttl_seconds == 12.5
    assert config.engine.default_body_weight_kg == 82.0
    assert config.logging.level == "DEBUG"


def test_unknown_log_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("MOODPK_LOG_LEVEL", "chatty")
    assert load_config_from_env().logging.level == "INFO"


@pytest.mark.parametrize("name, value", [
    ("MOODPK_CACHE_MAX_SIZE", "0"),
    ("MOODPK_CACHE_TTL_SECONDS", "-1"),
    ("MOODPK_CURVE_POINTS", "0"),
])
def test_invalid_values_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        load_config_from_env()


def test_get_config_is_cached(monkeypatch):
    first = get_config()
    monkeypatch.setenv("MOODPK_CACHE_MAX_SIZE", "7")
    assert get_config() is first
    get_config.cache_clear()
    assert get_config().cache.max_size == 7


def test_configure_logging_sets_root_level():
    root = logging.getLogger()
    previous_level, previous_handlers = root.level, root.handlers[:]
    try:
        configure_logging(LoggingConfig(level="WARNING"))
        assert root.level == logging.WARNING
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
