"""Client registry: sessions keyed by connection id, optionally forwarded onto a Bus."""

from __future__ import annotations

import asyncio

from loguru import logger

from irccore.diagnostics import DiagnosticSink
from irccore.gateway.bus import Bus
from irccore.identity import ConnectionIdentity
from irccore.protocol.casemapping import NameNormalizer
from irccore.session import IRCSession


class IRCClient:
    """Starts and tracks IRC sessions.

    Sessions are keyed by connection id, which leaves the nickname out: connecting a
    second identity with the same real name, server and port replaces the registry
    entry while the earlier session keeps running.
    """

    def __init__(
        self,
        bus: Bus | None = None,
        *,
        queue_size: int = 0,
        diagnostics: DiagnosticSink | None = None,
        normalize: NameNormalizer | None = None,
        open_connection=None,
    ) -> None:
        self._bus = bus
        self._queue_size = queue_size
        self._diagnostics = diagnostics
        self._normalize = normalize
        self._open_connection = open_connection
        self._sessions: dict[str, IRCSession] = {}
        self._all: list[IRCSession] = []
        self._forwarders: set[asyncio.Task] = set()

    @property
    def sessions(self) -> dict[str, IRCSession]:
        return dict(self._sessions)

    def get(self, connection_id: str) -> IRCSession | None:
        return self._sessions.get(connection_id)

    def connect(self, identity: ConnectionIdentity) -> IRCSession:
        """Create and start a session. Must be called with a running event loop."""
        session = IRCSession(
            identity,
            queue_size=self._queue_size,
            diagnostics=self._diagnostics,
            normalize=self._normalize,
            open_connection=self._open_connection,
        )
        if session.connection_id in self._sessions:
            logger.warning(
                "Connection id {} already registered; replacing entry (nickname {} is not part of the id)",
                session.connection_id,
                identity.nickname,
            )
        self._sessions[session.connection_id] = session
        self._all.append(session)
        session.start()
        if self._bus is not None:
            task = asyncio.create_task(self._forward(session), name=f"irc-forward:{session.connection_id}")
            self._forwarders.add(task)
            task.add_done_callback(self._forwarders.discard)
        return session

    async def _forward(self, session: IRCSession) -> None:
        """Drain a session's queue onto the bus; source is the connection id."""
        assert self._bus is not None
        async for evt in session.events():
            self._bus.publish(session.connection_id, evt)

    async def wait_all(self) -> None:
        """Wait until every session's reader and forwarder has finished."""
        await asyncio.gather(*(s.wait_closed() for s in self._all))
        await self._wait_forwarders()

    async def close(self, connection_id: str) -> None:
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            await session.close()

    async def close_all(self) -> None:
        """Close every session started by this client, including replaced ones."""
        for session in list(self._all):
            await session.close()
        self._sessions.clear()
        self._all.clear()
        # Forwarders end on their session's terminal event
        await self._wait_forwarders()

    async def _wait_forwarders(self) -> None:
        if not self._forwarders:
            return
        done, _ = await asyncio.wait(set(self._forwarders))
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error("Forwarder {} failed: {}", task.get_name(), task.exception())
