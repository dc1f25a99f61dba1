"""Ready-made event targets."""

from __future__ import annotations

from loguru import logger

from irccore.events import LIFECYCLE_EVENTS, ConnectionFailed


class LogTarget:
    """Logs every event it receives; lifecycle at INFO, chat traffic at DEBUG."""

    def accept_event(self, source: str, evt: object) -> bool:
        return True

    def push_event(self, source: str, evt: object) -> None:
        if isinstance(evt, ConnectionFailed):
            logger.warning("[{}] connection error: {}", source, evt.error)
            return
        fields = {k: v for k, v in getattr(evt, "__dict__", {}).items() if k != "connection_id"}
        if isinstance(evt, LIFECYCLE_EVENTS):
            logger.info("[{}] {}", source, type(evt).__name__)
        else:
            logger.debug("[{}] {} {}", source, type(evt).__name__, fields)
