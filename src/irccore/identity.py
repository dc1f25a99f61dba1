"""Connection identity: credentials supplied at connect time and the id derived from them."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from irccore.core.errors import ConfigurationError

_PORT_MIN = 1
_PORT_MAX = 65535


def credentials_to_id(real_name: str, server: str, port: int) -> str:
    """Connection id: ``<real_name>@<server>:<port>``.

    The nickname is not part of the id, so two logins with the same real name on the
    same server and port share one id.
    """
    return f"{real_name}@{server}:{port}"


@dataclass(frozen=True)
class ConnectionIdentity:
    """Immutable credentials for one connection. Password may be empty (skip PASS)."""

    real_name: str
    nickname: str
    server: str
    port: int
    password: str = field(default="", repr=False)
    tls: bool = False

    @property
    def connection_id(self) -> str:
        return credentials_to_id(self.real_name, self.server, self.port)

    def validate(self) -> ConnectionIdentity:
        """Raise ConfigurationError unless server/nickname are set and port is in range."""
        if not self.server or not self.server.strip():
            raise ConfigurationError("server must not be empty", code="missing_server")
        if not self.nickname or not self.nickname.strip():
            raise ConfigurationError("nickname must not be empty", code="missing_nickname")
        if " " in self.nickname:
            raise ConfigurationError(
                "nickname must not contain spaces",
                code="invalid_nickname",
                details={"nickname": self.nickname},
            )
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigurationError(
                "port must be an integer",
                code="invalid_port",
                details={"type": type(self.port).__name__},
            )
        if not _PORT_MIN <= self.port <= _PORT_MAX:
            raise ConfigurationError(
                f"port {self.port} out of range",
                code="invalid_port",
                details={"port": self.port},
            )
        return self

    def without_password(self) -> ConnectionIdentity:
        return replace(self, password="")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ConnectionIdentity:
        """Build an identity from a config mapping.

        Accepts ``real_name``/``realName``, ``nickname``/``nick``, ``server``, ``port``,
        ``password``, ``password_env`` (name of an env var holding the password) and ``tls``.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                "connection entry must be a mapping",
                code="invalid_connection",
                details={"type": type(data).__name__},
            )
        nickname = str(data.get("nickname") or data.get("nick") or "")
        real_name = str(data.get("real_name") or data.get("realName") or nickname)
        password = str(data.get("password") or "")
        password_env = data.get("password_env")
        if not password and password_env:
            password = os.environ.get(str(password_env), "")
        try:
            port = int(data.get("port", 6667))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "port must be an integer",
                code="invalid_port",
                details={"port": data.get("port")},
                original_error=exc,
            ) from exc
        identity = cls(
            real_name=real_name,
            nickname=nickname,
            server=str(data.get("server") or ""),
            port=port,
            password=password,
            tls=bool(data.get("tls", False)),
        )
        return identity.validate()
