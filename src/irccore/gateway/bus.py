"""Fan-out of connection events to registered consumers."""

from irccore.events import Dispatcher, DomainEvent, EventTarget

__all__ = ["Bus", "EventTarget"]


class Bus:
    """Delivers each session event to every target whose ``accept_event`` returns True.

    ``IRCClient`` publishes with the connection id as source, so one target can follow
    several connections and still tell them apart.
    """

    def __init__(self) -> None:
        self._dispatcher = Dispatcher()

    def register(self, target: EventTarget) -> None:
        self._dispatcher.register(target)

    def unregister(self, target: EventTarget) -> None:
        self._dispatcher.unregister(target)

    def publish(self, connection_id: str, evt: DomainEvent) -> None:
        self._dispatcher.dispatch(connection_id, evt)
