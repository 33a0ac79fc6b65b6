"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from sternhalma.config import ServiceSettings, env_flag, load_settings
from sternhalma.errors import ConfigurationError

_VARS = (
    "STERNHALMA_TRAINING_STATE_DIR",
    "STERNHALMA_TRAINING_SEED",
    "STERNHALMA_GAMES_PER_BATCH",
    "STERNHALMA_TRAINING_PROFILE",
    "STERNHALMA_GENOME_CACHE_TTL_SECONDS",
    "STERNHALMA_AI_WORKERS",
    "STERNHALMA_DEBUG_SEARCH",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    assert load_settings() == ServiceSettings()


def test_values_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("STERNHALMA_TRAINING_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("STERNHALMA_TRAINING_SEED", "42")
    monkeypatch.setenv("STERNHALMA_GAMES_PER_BATCH", "5")
    monkeypatch.setenv("STERNHALMA_TRAINING_PROFILE", " Default ")
    monkeypatch.setenv("STERNHALMA_GENOME_CACHE_TTL_SECONDS", "1.5")
    monkeypatch.setenv("STERNHALMA_AI_WORKERS", "3")
    monkeypatch.setenv("STERNHALMA_DEBUG_SEARCH", "yes")

    settings = load_settings()

    assert settings.training_state_dir == str(tmp_path)
    assert settings.training_seed == 42
    assert settings.games_per_batch == 5
    assert settings.training_profile == "default"
    assert settings.genome_cache_ttl_seconds == 1.5
    assert settings.ai_workers == 3
    assert settings.debug_search


@pytest.mark.parametrize(
    "name,value",
    [
        ("STERNHALMA_TRAINING_SEED", "seven"),
        ("STERNHALMA_GAMES_PER_BATCH", "0"),
        ("STERNHALMA_AI_WORKERS", "-1"),
        ("STERNHALMA_GENOME_CACHE_TTL_SECONDS", "soon"),
        ("STERNHALMA_TRAINING_PROFILE", "laptop"),
    ],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings()
    assert exc_info.value.code == "CONFIGURATION_ERROR"


def test_blank_integer_uses_default(monkeypatch):
    monkeypatch.setenv("STERNHALMA_TRAINING_SEED", "  ")
    assert load_settings().training_seed == 0


@pytest.mark.parametrize(
    "value,expected",
    [("1", True), ("TRUE", True), ("on", True), ("0", False), ("nope", False)],
)
def test_env_flag(monkeypatch, value, expected):
    monkeypatch.setenv("STERNHALMA_DEBUG_SEARCH", value)
    assert env_flag("STERNHALMA_DEBUG_SEARCH") is expected


def test_env_flag_default():
    assert env_flag("STERNHALMA_DEBUG_SEARCH", default=True)
