"""Session: one connection manager + one translator + the reader task that joins them."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from loguru import logger

from irccore.core.errors import FATAL_ERRORS, TransportError
from irccore.diagnostics import DiagnosticSink
from irccore.events import DomainEvent, Welcome, is_terminal
from irccore.gateway.queue import EventQueue
from irccore.identity import ConnectionIdentity
from irccore.protocol.casemapping import NameNormalizer
from irccore.protocol.translator import ProtocolTranslator
from irccore.transport.connection import Connection, ConnectionManager, ConnectionState

# Queued by close() when the reader was cancelled before it emitted anything
_END_OF_STREAM = object()


class IRCSession:
    """A single IRC connection producing an ordered DomainEvent stream.

    Events are queued without blocking the reader; consume them with ``events()``
    (single consumer). ``close()`` cancels the reader and releases the socket.
    """

    def __init__(
        self,
        identity: ConnectionIdentity,
        *,
        queue_size: int = 0,
        diagnostics: DiagnosticSink | None = None,
        normalize: NameNormalizer | None = None,
        open_connection=None,
    ) -> None:
        identity.validate()
        self._connection_id = identity.connection_id
        self._events = EventQueue(queue_size, name=self._connection_id)
        manager_kwargs = {"open_connection": open_connection} if open_connection else {}
        self._manager = ConnectionManager(identity, self._events.put, **manager_kwargs)
        self._translator = ProtocolTranslator(identity, diagnostics=diagnostics, normalize=normalize)
        self._task: asyncio.Task | None = None

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def connection(self) -> Connection:
        return self._manager.connection

    @property
    def state(self) -> ConnectionState:
        return self._manager.state

    @property
    def nickname(self) -> str:
        """Our current nickname (tracks server-assigned and changed nicks)."""
        return self._translator.nickname

    @property
    def queue(self) -> EventQueue:
        return self._events

    def start(self) -> asyncio.Task:
        """Start the reader task (idempotent)."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"irc-reader:{self._connection_id}")
        return self._task

    async def _run(self) -> None:
        channel = await self._manager.open()
        if channel is None:
            return
        # Handshake lines come from the translator's copy of the identity
        self._manager.forget_password()
        try:
            await self._translator.handshake(channel)
            async for evt in self._translator.attach(channel):
                if isinstance(evt, Welcome):
                    self._manager.mark_welcomed()
                self._events.put(evt)
        except FATAL_ERRORS as exc:
            await self._manager.fail(exc)
            return
        except Exception as exc:
            logger.exception("[{}] reader crashed: {}", self._connection_id, exc)
            await self._manager.fail(
                TransportError(
                    f"reader failed: {exc}",
                    code="reader_failed",
                    details={"connection_id": self._connection_id},
                    original_error=exc,
                )
            )
            return
        await self._manager.closed()

    async def events(self) -> AsyncIterator[DomainEvent]:
        """Yield queued events in arrival order; stops after the terminal event."""
        if self.connection.is_terminal and self._events.empty():
            return
        while True:
            evt = await self._events.get()
            if evt is _END_OF_STREAM:
                return
            yield evt
            if is_terminal(evt):
                return

    async def wait_closed(self) -> None:
        """Wait for the reader task to finish. Cancelling the waiter leaves the reader running."""
        if self._task is not None:
            await asyncio.wait({self._task})

    async def close(self) -> None:
        """Stop reading and close the socket; emits ConnectionClosed unless already terminal."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            # Our own cancellation propagates; the reader's is expected
            await asyncio.wait({self._task})
        was_opened = self._manager.opened
        if await self._manager.close() and not was_opened:
            # Cancelled before ConnectionPending: nothing was emitted, so wake the consumer directly
            self._events.put(_END_OF_STREAM)

    async def __aenter__(self) -> IRCSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
