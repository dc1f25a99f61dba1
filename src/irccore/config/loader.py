"""Config loading: YAML file over built-in defaults, with .env for secrets."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from loguru import logger

from irccore.core.errors import ConfigurationError

# Values Config falls back to when the file leaves a key out
DEFAULT_CONFIG: dict[str, Any] = {
    "connections": [],
    "event_queue_size": 0,
    "log_level": "INFO",
}


def _deep_update(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_update(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str | Path) -> dict[str, Any]:
    """Read a YAML config file with SafeLoader.

    A missing or empty file yields ``{}``. Unparseable YAML or a top level that is
    not a mapping raises ConfigurationError.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Config file not found: {}", path)
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse config {}: {}", path, exc)
        raise ConfigurationError(
            f"cannot parse {path}",
            code="invalid_yaml",
            details={"path": str(path)},
            original_error=exc,
        ) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{path} must contain a mapping",
            code="invalid_structure",
            details={"path": str(path), "type": type(data).__name__},
        )
    return data


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load .env (python-dotenv), then the YAML file merged over DEFAULT_CONFIG.

    Connection passwords are usually referenced through ``password_env`` so they
    can live in .env instead of the YAML file.
    """
    load_dotenv()
    return _deep_update(copy.deepcopy(DEFAULT_CONFIG), load_config(path))
