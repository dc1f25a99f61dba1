"""Decode one protocol line into a structured command (pydle RFC1459 parser)."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydle.features.rfc1459.parsing import RFC1459Message
from pydle.protocol import ProtocolViolation

from irccore.core.errors import ProtocolDecodeError


@dataclass
class IRCLine:
    """A decoded line: command is upper-case, numerics are three-digit strings."""

    command: str
    params: list[str] = field(default_factory=list)
    source: str | None = None
    raw: str = ""

    @property
    def nick(self) -> str:
        """Nick part of ``nick!user@host``; server names pass through unchanged."""
        if not self.source:
            return ""
        return self.source.split("!", 1)[0]

    @property
    def trailing(self) -> str:
        return self.params[-1] if self.params else ""

    def param(self, index: int, default: str = "") -> str:
        try:
            return self.params[index]
        except IndexError:
            return default


def _command_name(command: object) -> str:
    # pydle represents numerics as int
    if isinstance(command, int):
        return str(command).zfill(3)
    return str(command or "").upper()


def decode_line(line: bytes) -> IRCLine:
    """Decode a raw line (without terminator). Raises ProtocolDecodeError."""
    raw = line.decode("utf-8", errors="replace")
    try:
        message = RFC1459Message.parse(line)
    except ProtocolViolation as exc:
        raise ProtocolDecodeError(str(exc), code="protocol_violation", line=raw, original_error=exc) from exc
    except (ValueError, IndexError) as exc:
        raise ProtocolDecodeError(f"malformed line: {exc}", code="malformed", line=raw, original_error=exc) from exc

    command = _command_name(message.command)
    if not command:
        raise ProtocolDecodeError("line has no command", code="missing_command", line=raw)
    params = [str(p) for p in (message.params or [])]
    return IRCLine(command=command, params=params, source=message.source, raw=raw)
