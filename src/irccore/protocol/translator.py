"""Protocol translator: handshake, framing, decode and classification into domain events."""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from loguru import logger

from irccore.core.constants import (
    CTCP_ACTION,
    CTCP_DELIMITER,
    MAX_LINE_LENGTH,
    NAMES_PREFIXES,
    RPL_AWAY,
    RPL_ENDOFMOTD,
    RPL_ENDOFNAMES,
    RPL_ISUPPORT,
    RPL_MOTD,
    RPL_MOTDSTART,
    RPL_NAMREPLY,
    RPL_TOPIC,
    RPL_WELCOME,
)
from irccore.core.errors import (
    ConfigurationError,
    HandshakeWriteError,
    ProtocolDecodeError,
    TransportError,
)
from irccore.diagnostics import Diagnostic, DiagnosticSink, log_diagnostic
from irccore.events import (
    DomainEvent,
    action,
    away,
    channel_message,
    direct_message,
    join,
    motd,
    names,
    nick,
    notice,
    part,
    quit,
    topic,
    welcome,
)
from irccore.identity import ConnectionIdentity
from irccore.protocol.casemapping import NameNormalizer, equal_names, get_casemapping, unicode_fold
from irccore.protocol.framing import LineBuffer
from irccore.protocol.parsing import IRCLine, decode_line

_LEADING_CHANNEL = re.compile(r"^\[(#\S+)\]")

# Commands accepted without an event; reported to the diagnostic sink
_UNHANDLED = frozenset({"MODE", "INVITE", "KICK"})


class LineChannel(Protocol):
    """What the translator needs from the transport."""

    async def read(self) -> bytes: ...

    async def write_line(self, line: str) -> None: ...


def channel_from_notice(message: str) -> str | None:
    """``"[#room] hello"`` -> ``"#room"``; None without a leading bracketed channel."""
    match = _LEADING_CHANNEL.match(message)
    return match.group(1) if match else None


class ProtocolTranslator:
    """Turns one connection's byte stream into DomainEvents.

    The translator owns the framing buffer and the multi-line accumulators (MOTD,
    NAMES); it never touches the socket itself except through ``attach``.
    """

    def __init__(
        self,
        identity: ConnectionIdentity,
        *,
        diagnostics: DiagnosticSink | None = None,
        normalize: NameNormalizer | None = None,
        max_line_length: int = MAX_LINE_LENGTH,
    ) -> None:
        self._identity = identity
        self._connection_id = identity.connection_id
        self.nickname = identity.nickname
        self._normalize = normalize or unicode_fold
        # An injected normaliser wins over the server's CASEMAPPING
        self._casemapping_locked = normalize is not None
        self._diagnostics = diagnostics or log_diagnostic
        self._lines = LineBuffer(max_line_length)
        self._motd: list[str] = []
        self._names: dict[str, list[str]] = {}  # keyed by normalised channel
        self._replies: list[str] = []
        self._handshake_sent = False
        self._handlers: dict[str, Callable[[IRCLine], list[DomainEvent]]] = {
            "NOTICE": self._on_notice,
            "PRIVMSG": self._on_privmsg,
            "JOIN": self._on_join,
            "PART": self._on_part,
            "QUIT": self._on_quit,
            "NICK": self._on_nick,
            "TOPIC": self._on_topic,
            "PING": self._on_ping,
            "PONG": self._ignore,
            "CAP": self._ignore,
            "ERROR": self._on_error,
            RPL_WELCOME: self._on_welcome,
            RPL_ISUPPORT: self._on_isupport,
            RPL_AWAY: self._on_away,
            RPL_TOPIC: self._on_topic_reply,
            RPL_NAMREPLY: self._on_names_reply,
            RPL_ENDOFNAMES: self._on_end_of_names,
            RPL_MOTDSTART: self._on_motd_start,
            RPL_MOTD: self._on_motd_line,
            RPL_ENDOFMOTD: self._on_end_of_motd,
        }

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def normalize(self) -> NameNormalizer:
        return self._normalize

    def is_me(self, name: str) -> bool:
        return equal_names(name, self.nickname, self._normalize)

    # -- handshake -------------------------------------------------------

    def handshake_lines(self) -> list[str]:
        """PASS (only with a password), NICK, USER; always in this order."""
        identity = self._identity
        lines: list[str] = []
        if identity.password:
            lines.append(f"PASS {identity.password}")
        lines.append(f"NICK {identity.nickname}")
        lines.append(f"USER {identity.nickname} 0 * :{identity.real_name}")
        return lines

    async def handshake(self, channel: LineChannel) -> None:
        """Write the handshake once. Raises HandshakeWriteError; never retries."""
        if self._handshake_sent:
            return
        lines = self.handshake_lines()
        self._handshake_sent = True
        self._identity = self._identity.without_password()
        for line in lines:
            try:
                await channel.write_line(line)
            except (OSError, TransportError) as exc:
                command = line.split(" ", 1)[0]
                raise HandshakeWriteError(
                    f"failed to send {command}: {exc}",
                    code="handshake_write_failed",
                    details={"connection_id": self._connection_id, "command": command},
                    original_error=exc,
                ) from exc
        logger.debug("[{}] handshake sent as {}", self._connection_id, self._identity.nickname)

    # -- stream ----------------------------------------------------------

    async def attach(self, channel: LineChannel) -> AsyncIterator[DomainEvent]:
        """Handshake, then yield events until the channel reaches EOF.

        Raises HandshakeWriteError or TransportError; a bad line never ends the stream.
        """
        await self.handshake(channel)
        while True:
            try:
                data = await channel.read()
            except OSError as exc:
                raise TransportError(
                    f"read failed: {exc}",
                    code="read_failed",
                    details={"connection_id": self._connection_id},
                    original_error=exc,
                ) from exc
            if not data:
                return
            events = self.feed(data)
            await self._flush_replies(channel)
            for evt in events:
                yield evt

    async def _flush_replies(self, channel: LineChannel) -> None:
        for reply in self.take_replies():
            try:
                await channel.write_line(reply)
            except OSError as exc:
                raise TransportError(
                    f"write failed: {exc}",
                    code="write_failed",
                    details={"connection_id": self._connection_id},
                    original_error=exc,
                ) from exc

    def take_replies(self) -> list[str]:
        """Lines the protocol requires us to send back (PONG)."""
        replies, self._replies = self._replies, []
        return replies

    def feed(self, data: bytes) -> list[DomainEvent]:
        events: list[DomainEvent] = []
        for raw in self._lines.feed(data):
            events.extend(self.translate(raw))
        return events

    def translate(self, raw: bytes) -> list[DomainEvent]:
        """Decode and classify one complete line. Failures are isolated to the line."""
        try:
            line = decode_line(raw)
        except ProtocolDecodeError as exc:
            self._diagnose("decode_error", "", str(exc), exc.line)
            return []

        handler = self._handlers.get(line.command)
        if handler is None:
            self._on_unknown(line)
            return []
        try:
            return handler(line)
        except ProtocolDecodeError as exc:
            self._diagnose("decode_error", line.command, str(exc), line.raw)
            return []
        except Exception as exc:
            logger.exception("[{}] failed to translate {!r}: {}", self._connection_id, line.raw, exc)
            self._diagnose("decode_error", line.command, str(exc), line.raw)
            return []

    def _diagnose(self, kind, command: str, message: str, raw: str = "") -> None:
        self._diagnostics(
            Diagnostic(
                connection_id=self._connection_id,
                kind=kind,
                command=command,
                message=message,
                line=raw,
            )
        )

    # -- handlers --------------------------------------------------------

    def _ignore(self, line: IRCLine) -> list[DomainEvent]:
        return []

    def _on_unknown(self, line: IRCLine) -> None:
        if line.command in _UNHANDLED:
            self._diagnose("unhandled", line.command, " ".join(line.params), line.raw)
        elif line.command.isdigit() and 400 <= int(line.command) < 600:
            self._diagnose("server_error", line.command, line.trailing, line.raw)
        # Remaining numerics are informational (002-004, LUSERS, ...)
        elif not line.command.isdigit():
            self._diagnose("unknown_command", line.command, line.trailing, line.raw)

    def _on_error(self, line: IRCLine) -> list[DomainEvent]:
        self._diagnose("server_error", line.command, line.trailing, line.raw)
        return []

    def _on_ping(self, line: IRCLine) -> list[DomainEvent]:
        self._replies.append(f"PONG :{line.trailing}")
        return []

    def _on_notice(self, line: IRCLine) -> list[DomainEvent]:
        target = line.param(0)
        text = line.param(1)
        channel = channel_from_notice(text)
        if channel:
            # Drop the leading "[#channel]" token
            to = channel
            message = " ".join(text.split(" ")[1:])
        else:
            to = target
            message = text
        _, evt = notice(self._connection_id, line.nick, to, message)
        return [evt]

    def _on_privmsg(self, line: IRCLine) -> list[DomainEvent]:
        target = line.param(0)
        text = line.param(1)
        sender = line.nick
        stripped = text.strip()
        if stripped.startswith(CTCP_ACTION):
            body = stripped[len(CTCP_ACTION) :]
            if body.startswith(" "):
                body = body[1:]
            if body.endswith(CTCP_DELIMITER):
                body = body[: -len(CTCP_DELIMITER)]
            channel = sender if self.is_me(target) else target
            _, evt = action(self._connection_id, channel, sender, body)
        elif self.is_me(target):
            _, evt = direct_message(self._connection_id, sender, text)
        else:
            _, evt = channel_message(self._connection_id, target, sender, text)
        return [evt]

    def _on_join(self, line: IRCLine) -> list[DomainEvent]:
        _, evt = join(self._connection_id, line.param(0), line.nick)
        return [evt]

    def _on_part(self, line: IRCLine) -> list[DomainEvent]:
        channels = [c for c in line.param(0).split(",") if c]
        _, evt = part(self._connection_id, line.nick, channels, message=line.param(1))
        return [evt]

    def _on_quit(self, line: IRCLine) -> list[DomainEvent]:
        _, evt = quit(self._connection_id, line.nick, message=line.param(0))
        return [evt]

    def _on_nick(self, line: IRCLine) -> list[DomainEvent]:
        old, new = line.nick, line.param(0)
        if self.is_me(old):
            self.nickname = new
        _, evt = nick(self._connection_id, old, new)
        return [evt]

    def _on_topic(self, line: IRCLine) -> list[DomainEvent]:
        _, evt = topic(self._connection_id, line.param(0), line.param(1))
        return [evt]

    def _on_topic_reply(self, line: IRCLine) -> list[DomainEvent]:
        # :server 332 me #channel :topic
        _, evt = topic(self._connection_id, line.param(1), line.param(2))
        return [evt]

    def _on_away(self, line: IRCLine) -> list[DomainEvent]:
        # :server 301 me nick :message
        _, evt = away(self._connection_id, line.param(1), line.param(2))
        return [evt]

    def _on_welcome(self, line: IRCLine) -> list[DomainEvent]:
        assigned = line.param(0)
        if assigned and assigned != "*":
            self.nickname = assigned
        _, evt = welcome(self._connection_id, assigned or self.nickname)
        return [evt]

    def _on_isupport(self, line: IRCLine) -> list[DomainEvent]:
        # :server 005 me TOKEN=value ... :are supported by this server
        for token in line.params[1:-1]:
            key, _, value = token.partition("=")
            if key.upper() != "CASEMAPPING" or self._casemapping_locked:
                continue
            try:
                self._normalize = get_casemapping(value)
            except ConfigurationError as exc:
                self._diagnose("unknown_command", line.command, str(exc), line.raw)
            else:
                logger.debug("[{}] server casemapping {}", self._connection_id, value)
        return []

    def _on_names_reply(self, line: IRCLine) -> list[DomainEvent]:
        # :server 353 me = #channel :nick1 @nick2 +nick3  (symbol is optional)
        if len(line.params) < 3:
            raise ProtocolDecodeError("NAMES reply without channel", line=line.raw)
        channel = line.params[-2]
        members = [n.lstrip(NAMES_PREFIXES) for n in line.params[-1].split()]
        self._names.setdefault(self._normalize(channel), []).extend(n for n in members if n)
        return []

    def _on_end_of_names(self, line: IRCLine) -> list[DomainEvent]:
        channel = line.param(1)
        _, evt = names(self._connection_id, channel, self._names.pop(self._normalize(channel), []))
        return [evt]

    def _on_motd_start(self, line: IRCLine) -> list[DomainEvent]:
        self._motd = []
        return []

    def _on_motd_line(self, line: IRCLine) -> list[DomainEvent]:
        self._motd.append(line.trailing)
        return []

    def _on_end_of_motd(self, line: IRCLine) -> list[DomainEvent]:
        lines, self._motd = self._motd, []
        _, evt = motd(self._connection_id, lines)
        return [evt]
