"""
Tests for config loading and settings resolution.
"""

import dataclasses

import pytest

from mindlink.config import DEFAULTS, Settings, load_config, resolve_settings


def test_defaults_without_env():
    s = resolve_settings(DEFAULTS, env={})
    assert s == Settings()
    assert s.provider == "openai"
    assert s.model == "gpt-5"
    assert s.memory_turns == 6
    assert s.max_retries == 5
    assert s.base_backoff_ms == 300


def test_env_overrides():
    env = {
        "AI_PROVIDER": "OpenAI",
        "AI_MODEL": "gpt-4o",
        "OPENAI_API_KEY": "sk-env",
        "AI_MEMORY_TURNS": "12",
        "AI_MAX_RETRIES": "2",
        "AI_BACKOFF_MS": "50",
        "OPENAI_BASE_URL": "http://local:8080/",
    }
    s = resolve_settings(DEFAULTS, env=env)
    assert s.provider == "openai"
    assert s.model == "gpt-4o"
    assert s.api_key == "sk-env"
    assert s.memory_turns == 12
    assert s.max_retries == 2
    assert s.base_backoff_ms == 50
    assert s.base_url == "http://local:8080"


def test_bad_numeric_env_falls_back():
    s = resolve_settings(DEFAULTS, env={"AI_MAX_RETRIES": "lots", "AI_MEMORY_TURNS": ""})
    assert s.max_retries == 5
    assert s.memory_turns == 6


def test_negative_values_are_clamped():
    s = resolve_settings(DEFAULTS, env={"AI_MAX_RETRIES": "-3", "AI_MEMORY_TURNS": "-1"})
    assert s.max_retries == 0
    assert s.memory_turns == 0


def test_yaml_config_with_env_refs(tmp_path, monkeypatch):
    monkeypatch.setenv("MY_TEST_KEY_98765", "sk-yaml")
    path = tmp_path / "config.yaml"
    path.write_text(
        "backend:\n"
        "  model: gpt-yaml\n"
        "  api_key: ${MY_TEST_KEY_98765}\n"
        "retry:\n"
        "  max_retries: 9\n"
    )
    cfg = load_config(path)
    assert cfg["backend"]["api_key"] == "sk-yaml"
    assert cfg["backend"]["provider"] == "openai"  # merged from defaults

    s = resolve_settings(cfg, env={})
    assert s.model == "gpt-yaml"
    assert s.max_retries == 9
    assert s.base_backoff_ms == 300


def test_env_beats_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("backend:\n  model: gpt-yaml\n")
    s = resolve_settings(load_config(path), env={"AI_MODEL": "gpt-env"})
    assert s.model == "gpt-env"


def test_missing_explicit_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_empty_yaml_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == DEFAULTS


def test_settings_are_immutable():
    s = Settings()
    with pytest.raises(dataclasses.FrozenInstanceError):
        s.max_retries = 1


def test_settings_replace_ignores_none():
    s = Settings(model="a").replace(model=None, memory_turns=3)
    assert s.model == "a"
    assert s.memory_turns == 3
