"""Config schema and accessor."""

from __future__ import annotations

import os
from typing import Any

from loguru import logger

from irccore.core.errors import ConfigurationError
from irccore.identity import ConnectionIdentity
from irccore.protocol.casemapping import get_casemapping

# Env keys that override config (loaded once per reload)
_ENV_OVERRIDE_KEYS = (
    "IRCCORE_EVENT_QUEUE_SIZE",
    "IRCCORE_CASEMAPPING",
    "LOG_LEVEL",
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _load_env_overrides() -> dict[str, str]:
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


class Config:
    """Config accessor with attribute-style access for nested keys."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data."""
        self._data = data or {}
        self._env = _load_env_overrides()
        if validate:
            self._validate()
        logger.debug("Config reloaded: {} connections", len(self.connections))

    def _validate(self) -> None:
        """Validate config structure; raise ConfigurationError on failure."""
        connections = self._data.get("connections")
        if connections is not None and not isinstance(connections, list):
            raise ConfigurationError(
                "connections must be a list",
                code="invalid_connections",
                details={"type": type(connections).__name__},
            )
        for i, item in enumerate(self.connections):
            if not isinstance(item, dict):
                raise ConfigurationError(
                    f"connections[{i}] must be a dict",
                    code="invalid_connection_item",
                    details={"index": i},
                )
        # Raises on bad identities, queue sizes or casemappings
        self.identities()
        if self.event_queue_size < 0:
            raise ConfigurationError(
                "event_queue_size must be >= 0",
                code="invalid_event_queue_size",
                details={"value": self.event_queue_size},
            )
        if self.casemapping is not None:
            get_casemapping(self.casemapping)

    @property
    def raw(self) -> dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path (e.g. 'connections.0.server')."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            elif isinstance(obj, list) and part.isdigit() and int(part) < len(obj):
                obj = obj[int(part)]
            else:
                return default
        return obj

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def connections(self) -> list[dict[str, Any]]:
        """Connection entries (real_name, nickname, server, port, password/password_env, tls)."""
        c = self._data.get("connections")
        return c if isinstance(c, list) else []

    def identities(self) -> list[ConnectionIdentity]:
        identities = []
        for i, item in enumerate(self.connections):
            try:
                identities.append(ConnectionIdentity.from_mapping(item))
            except ConfigurationError as exc:
                exc.details.setdefault("index", i)
                raise
        return identities

    @property
    def event_queue_size(self) -> int:
        """0 means unbounded; otherwise drop-oldest when full."""
        env_val = self._env.get("IRCCORE_EVENT_QUEUE_SIZE", "")
        raw = env_val if env_val.strip() else self._data.get("event_queue_size", 0)
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "event_queue_size must be an integer",
                code="invalid_event_queue_size",
                details={"value": raw},
                original_error=exc,
            ) from exc

    @property
    def casemapping(self) -> str | None:
        """Forced nickname casemapping; None lets the server's CASEMAPPING decide."""
        env_val = self._env.get("IRCCORE_CASEMAPPING", "").strip()
        val = env_val or self._data.get("casemapping")
        if val and isinstance(val, str) and val.strip():
            return val.strip()
        return None

    @property
    def log_level(self) -> str:
        env_val = self._env.get("LOG_LEVEL", "").upper()
        if env_val in _LOG_LEVELS:
            return env_val
        val = str(self._data.get("log_level", "INFO")).upper()
        return val if val in _LOG_LEVELS else "INFO"


# Global config instance (set by __main__)
cfg: Config = Config({})
