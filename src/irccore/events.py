"""Event types and dispatcher: the typed domain events a connection produces."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, Union

if TYPE_CHECKING:
    from irccore.core.errors import IRCCoreError


@dataclass
class ConnectionPending:
    """Connect requested; socket not open yet."""

    connection_id: str
    real_name: str
    nickname: str
    server: str
    port: int


@dataclass
class ConnectionEstablished:
    """Socket is open."""

    connection_id: str


@dataclass
class ConnectionFailed:
    """Connection-fatal error (connect, transport or handshake write)."""

    connection_id: str
    error: IRCCoreError


@dataclass
class ConnectionClosed:
    """Socket closed by peer or locally."""

    connection_id: str


@dataclass
class Welcome:
    """Server accepted registration (001)."""

    connection_id: str
    nick: str


@dataclass
class Motd:
    """Complete message of the day, lines joined by newline."""

    connection_id: str
    text: str


@dataclass
class Notice:
    connection_id: str
    sender: str
    to: str
    message: str


@dataclass
class Away:
    connection_id: str
    nick: str
    message: str


@dataclass
class Part:
    connection_id: str
    nick: str
    message: str
    channels: list[str] = field(default_factory=list)


@dataclass
class Quit:
    connection_id: str
    nick: str
    message: str


@dataclass
class Nick:
    connection_id: str
    old_nickname: str
    new_nickname: str


@dataclass
class Topic:
    connection_id: str
    channel: str
    topic: str


@dataclass
class Join:
    connection_id: str
    channel: str
    sender: str


@dataclass
class Names:
    """Channel member list, in the order the server sent it."""

    connection_id: str
    channel: str
    names: list[str] = field(default_factory=list)


@dataclass
class DirectMessage:
    """PRIVMSG addressed to our nickname."""

    connection_id: str
    sender: str
    message: str


@dataclass
class ChannelMessage:
    connection_id: str
    channel: str
    sender: str
    message: str


@dataclass
class Action:
    """CTCP ACTION; message is rendered as ``"<sender> <text>"``."""

    connection_id: str
    channel: str
    sender: str
    message: str


DomainEvent = Union[
    ConnectionPending,
    ConnectionEstablished,
    ConnectionFailed,
    ConnectionClosed,
    Welcome,
    Motd,
    Notice,
    Away,
    Part,
    Quit,
    Nick,
    Topic,
    Join,
    Names,
    DirectMessage,
    ChannelMessage,
    Action,
]

LIFECYCLE_EVENTS = (ConnectionPending, ConnectionEstablished, ConnectionFailed, ConnectionClosed)
TERMINAL_EVENTS = (ConnectionFailed, ConnectionClosed)


def is_terminal(evt: object) -> bool:
    """True for the last event a connection ever emits."""
    return isinstance(evt, TERMINAL_EVENTS)


class EventTarget(Protocol):
    """Consumer interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event (may be async via queue)."""
        ...


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name
        return wrapper

    return decorator


@event("connection_pending")
def connection_pending(
    connection_id: str, real_name: str, nickname: str, server: str, port: int
) -> ConnectionPending:
    return ConnectionPending(
        connection_id=connection_id,
        real_name=real_name,
        nickname=nickname,
        server=server,
        port=port,
    )


@event("connection_established")
def connection_established(connection_id: str) -> ConnectionEstablished:
    return ConnectionEstablished(connection_id=connection_id)


@event("connection_error")
def connection_error(connection_id: str, error: IRCCoreError) -> ConnectionFailed:
    return ConnectionFailed(connection_id=connection_id, error=error)


@event("connection_closed")
def connection_closed(connection_id: str) -> ConnectionClosed:
    return ConnectionClosed(connection_id=connection_id)


@event("welcome")
def welcome(connection_id: str, nick: str) -> Welcome:
    return Welcome(connection_id=connection_id, nick=nick)


@event("motd")
def motd(connection_id: str, lines: list[str]) -> Motd:
    return Motd(connection_id=connection_id, text="\n".join(lines))


@event("notice")
def notice(connection_id: str, sender: str, to: str, message: str) -> Notice:
    return Notice(connection_id=connection_id, sender=sender, to=to, message=message)


@event("away")
def away(connection_id: str, nick: str, message: str) -> Away:
    return Away(connection_id=connection_id, nick=nick, message=message)


@event("part")
def part(connection_id: str, nick: str, channels: list[str], *, message: str = "") -> Part:
    return Part(connection_id=connection_id, nick=nick, message=message, channels=list(channels))


@event("quit")
def quit(connection_id: str, nick: str, *, message: str = "") -> Quit:
    return Quit(connection_id=connection_id, nick=nick, message=message)


@event("nick")
def nick(connection_id: str, old_nickname: str, new_nickname: str) -> Nick:
    return Nick(connection_id=connection_id, old_nickname=old_nickname, new_nickname=new_nickname)


@event("topic")
def topic(connection_id: str, channel: str, topic: str) -> Topic:
    return Topic(connection_id=connection_id, channel=channel, topic=topic)


@event("join")
def join(connection_id: str, channel: str, sender: str) -> Join:
    return Join(connection_id=connection_id, channel=channel, sender=sender)


@event("names")
def names(connection_id: str, channel: str, names: list[str]) -> Names:
    return Names(connection_id=connection_id, channel=channel, names=list(names))


@event("direct_message")
def direct_message(connection_id: str, sender: str, message: str) -> DirectMessage:
    return DirectMessage(connection_id=connection_id, sender=sender, message=message)


@event("channel_message")
def channel_message(connection_id: str, channel: str, sender: str, message: str) -> ChannelMessage:
    return ChannelMessage(connection_id=connection_id, channel=channel, sender=sender, message=message)


@event("action")
def action(connection_id: str, channel: str, sender: str, text: str) -> Action:
    return Action(connection_id=connection_id, channel=channel, sender=sender, message=f"{sender} {text}")


class Dispatcher:
    """Central event dispatcher; targets filter by type and receive events."""

    def __init__(self) -> None:
        self._targets: list[EventTarget] = []

    def register(self, target: EventTarget) -> None:
        """Register an event target (consumer)."""
        self._targets.append(target)

    def unregister(self, target: EventTarget) -> None:
        """Unregister an event target."""
        if target in self._targets:
            self._targets.remove(target)

    def dispatch(self, source: str, evt: object) -> None:
        """Dispatch event to all targets that accept it."""
        from loguru import logger

        for target in self._targets:
            try:
                if target.accept_event(source, evt):
                    target.push_event(source, evt)
            except Exception as exc:
                logger.exception("Failed to pass event to target {}: {}", target, exc)
