"""Core domain exceptions."""

from __future__ import annotations


class IRCCoreError(Exception):
    """Base for irccore domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class ConfigurationError(IRCCoreError):
    """Config validation or load failure."""


class ConnectError(IRCCoreError):
    """Socket could not be opened (refused, DNS failure, TLS failure)."""


class TransportError(IRCCoreError):
    """Socket failed after it was opened."""


class HandshakeWriteError(IRCCoreError):
    """PASS/NICK/USER could not be written."""


class ProtocolDecodeError(IRCCoreError):
    """A single protocol line could not be decoded. Never connection-fatal."""

    def __init__(self, message: str, *, line: str = "", **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.line = line


# Errors that terminate a connection's event stream
FATAL_ERRORS: tuple[type[IRCCoreError], ...] = (ConnectError, TransportError, HandshakeWriteError)
