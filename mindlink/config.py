"""
Config loader for mindlink.

Reads config.yaml (optional) once, layers environment variables on top and
resolves everything into an immutable Settings value. Nothing below the CLI
reads the environment; the agent and client only ever see Settings.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

import yaml
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

DEFAULTS: dict = {
    "backend": {
        "provider": "openai",
        "url": "https://api.openai.com",
        "model": "gpt-5",
        "api_key": "",
        "timeout": 120,
    },
    "memory": {
        "turns": 6,
        "project": True,
    },
    "retry": {
        "max_retries": 5,
        "backoff_ms": 300,
    },
    "logging": {
        "level": "WARNING",
        "file": None,
    },
}

# Environment variable -> (section, key, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "AI_PROVIDER": ("backend", "provider", str),
    "AI_MODEL": ("backend", "model", str),
    "OPENAI_API_KEY": ("backend", "api_key", str),
    "OPENAI_BASE_URL": ("backend", "url", str),
    "AI_TIMEOUT": ("backend", "timeout", float),
    "AI_MEMORY_TURNS": ("memory", "turns", int),
    "AI_MAX_RETRIES": ("retry", "max_retries", int),
    "AI_BACKOFF_MS": ("retry", "backoff_ms", int),
}


@dataclass(frozen=True)
class Settings:
    """Resolved, read-only runtime settings."""
    provider: str = "openai"
    model: str = "gpt-5"
    api_key: str = ""
    base_url: str = "https://api.openai.com"
    timeout: float = 120.0
    memory_turns: int = 6
    max_retries: int = 5
    base_backoff_ms: int = 300
    project_memory: bool = True

    def replace(self, **changes) -> "Settings":
        """Return a copy with the given fields changed. None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} patterns with actual environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | str | None = None) -> dict:
    """
    Load config from YAML, merged over the built-in defaults.
    An explicit path must exist; the default config.yaml is optional.
    The default location is cached after the first load.
    """
    global _config
    if path is None and _config is not None:
        return _config

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")
    else:
        config_path = _CONFIG_PATH

    raw: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

    cfg = _merge(DEFAULTS, _walk_and_resolve(raw))
    if path is None:
        _config = cfg
    return cfg


def get_config() -> dict:
    """Return cached base config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def _apply_env(cfg: dict, env: Mapping[str, str]) -> dict:
    cfg = _merge(cfg, {})
    for var, (section, key, cast) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = cast(raw)
        except ValueError:
            logging.getLogger(__name__).warning(
                "Ignoring %s=%r (expected %s)", var, raw, cast.__name__
            )
            continue
        cfg[section] = {**cfg.get(section, {}), key: value}
    return cfg


def resolve_settings(cfg: dict | None = None, env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from a config dict plus environment overrides."""
    cfg = _apply_env(cfg if cfg is not None else get_config(), os.environ if env is None else env)
    backend = cfg.get("backend", {})
    memory = cfg.get("memory", {})
    retry = cfg.get("retry", {})
    return Settings(
        provider=str(backend.get("provider", "openai")).strip().lower(),
        model=str(backend.get("model", "gpt-5")),
        api_key=str(backend.get("api_key") or ""),
        base_url=str(backend.get("url", "https://api.openai.com")).rstrip("/"),
        timeout=float(backend.get("timeout", 120)),
        memory_turns=max(0, int(memory.get("turns", 6))),
        max_retries=max(0, int(retry.get("max_retries", 5))),
        base_backoff_ms=max(0, int(retry.get("backoff_ms", 300))),
        project_memory=bool(memory.get("project", True)),
    )


def setup_logging(cfg: dict, verbose: bool = False):
    log_cfg = cfg.get("logging", {})
    level_name = "DEBUG" if verbose else str(log_cfg.get("level") or "WARNING")
    level = getattr(logging, level_name.upper(), logging.WARNING)
    log_file = log_cfg.get("file")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
