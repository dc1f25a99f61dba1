"""Gateway: event bus, buffered event queue, logging target."""

from irccore.gateway.bus import Bus
from irccore.gateway.queue import EventQueue
from irccore.gateway.targets import LogTarget

__all__ = ["Bus", "EventQueue", "LogTarget"]
