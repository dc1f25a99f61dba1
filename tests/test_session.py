"""End-to-end session tests against a loopback IRC server."""

from __future__ import annotations

import asyncio

import pytest

from irccore.core.errors import ConfigurationError, HandshakeWriteError, TransportError
from irccore.events import (
    ChannelMessage,
    ConnectionClosed,
    ConnectionEstablished,
    ConnectionFailed,
    ConnectionPending,
    DirectMessage,
    Motd,
    Welcome,
)
from irccore.session import IRCSession
from irccore.transport import ConnectionState
from tests.mocks import (
    ClosedWriter,
    DiagnosticRecorder,
    FakeIRCServer,
    collect_events,
    free_port,
    make_identity,
    stalled_opener,
)


class RecordingWriter:
    """StreamWriter stand-in that accepts every write."""

    def __init__(self) -> None:
        self.data = b""

    def is_closing(self) -> bool:
        return False

    def write(self, data: bytes) -> None:
        self.data += data

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        pass

    async def wait_closed(self) -> None:
        return None


def _opener(reader, writer):
    async def _open(host, port, ssl=None):
        return reader, writer

    return _open


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_full_conversation(self):
        async with FakeIRCServer() as server:
            # Arrange
            session = IRCSession(make_identity(port=server.port, password="pw"))
            session.start()
            await server.wait_for_lines(3)

            # Act
            await server.send(
                ":srv 001 alice :Welcome to the network",
                ":srv 375 alice :- srv Message of the day -",
                ":srv 372 alice :- be nice",
                ":srv 376 alice :End of /MOTD command.",
                ":bob!b@host PRIVMSG #room :hello",
                ":bob!b@host PRIVMSG alice :psst",
            )
            await server.drop_clients()
            events = await collect_events(session)

            # Assert
            assert server.received == ["PASS pw", "NICK alice", "USER alice 0 * :Alice Liddell"]
            assert [type(e) for e in events] == [
                ConnectionPending,
                ConnectionEstablished,
                Welcome,
                Motd,
                ChannelMessage,
                DirectMessage,
                ConnectionClosed,
            ]
            assert events[3].text == "- be nice"
            assert {e.connection_id for e in events} == {session.connection_id}
            assert session.state is ConnectionState.CLOSED
            assert session.connection.identity.password == ""

    @pytest.mark.asyncio
    async def test_welcomed_state_and_assigned_nick(self):
        async with FakeIRCServer() as server:
            session = IRCSession(make_identity(port=server.port))
            session.start()
            await server.wait_for_lines(2)

            await server.send(":srv 001 alice_ :Welcome")
            seen = []
            async for evt in session.events():
                seen.append(evt)
                if isinstance(evt, Welcome):
                    break

            assert session.state is ConnectionState.WELCOMED
            assert session.nickname == "alice_"
            await session.close()

    @pytest.mark.asyncio
    async def test_ping_is_answered(self):
        async with FakeIRCServer() as server:
            session = IRCSession(make_identity(port=server.port))
            session.start()
            await server.wait_for_lines(2)

            await server.send("PING :tok123")
            await server.wait_for_lines(3)

            assert server.received[2] == "PONG :tok123"
            await session.close()

    @pytest.mark.asyncio
    async def test_malformed_line_does_not_end_session(self):
        async with FakeIRCServer() as server:
            recorder = DiagnosticRecorder()
            session = IRCSession(make_identity(port=server.port), diagnostics=recorder)
            session.start()
            await server.wait_for_lines(2)

            await server.send(":irc.example.net", ":bob!b@host PRIVMSG #room :still here")
            await server.drop_clients()
            events = await collect_events(session)

            assert [type(e) for e in events][-2:] == [ChannelMessage, ConnectionClosed]
            assert recorder.kinds == ["decode_error"]

    @pytest.mark.asyncio
    async def test_line_split_across_writes(self):
        async with FakeIRCServer() as server:
            session = IRCSession(make_identity(port=server.port))
            session.start()
            await server.wait_for_lines(2)

            await server.send_raw(b":bob!b@host PRIVMSG #room :hel")
            await asyncio.sleep(0.05)
            await server.send_raw(b"lo\r\n")
            await server.drop_clients()
            events = await collect_events(session)

            messages = [e for e in events if isinstance(e, ChannelMessage)]
            assert [m.message for m in messages] == ["hello"]


class TestSessionClose:
    @pytest.mark.asyncio
    async def test_close_ends_event_stream(self):
        async with FakeIRCServer() as server:
            session = IRCSession(make_identity(port=server.port))
            session.start()
            await server.wait_for_lines(2)

            await session.close()
            events = await collect_events(session)

            assert [type(e) for e in events] == [ConnectionPending, ConnectionEstablished, ConnectionClosed]
            await asyncio.wait_for(server.client_gone.wait(), 2.0)

    @pytest.mark.asyncio
    async def test_close_twice_emits_one_terminal_event(self):
        async with FakeIRCServer() as server:
            session = IRCSession(make_identity(port=server.port))
            session.start()
            await server.wait_for_lines(2)

            await session.close()
            await session.close()
            events = await collect_events(session)

            assert sum(isinstance(e, ConnectionClosed) for e in events) == 1
            assert session.queue.empty()

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with FakeIRCServer() as server:
            async with IRCSession(make_identity(port=server.port)) as session:
                await server.wait_for_lines(2)

            events = await collect_events(session)
            assert isinstance(events[-1], ConnectionClosed)

    @pytest.mark.asyncio
    async def test_close_right_after_start_ends_event_stream(self):
        session = IRCSession(make_identity(port=free_port()))
        session.start()

        await session.close()
        events = await collect_events(session)

        assert events == []
        assert session.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_cancelling_close_propagates_to_caller(self):
        # Arrange
        release = asyncio.Event()
        session = IRCSession(make_identity(), open_connection=stalled_opener(release))
        session.start()
        await asyncio.sleep(0)

        # Act
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(session.close(), 0.1)

        # Assert
        assert not session.connection.is_terminal
        release.set()
        await session.close()
        events = await collect_events(session)
        assert [type(e) for e in events] == [ConnectionPending, ConnectionClosed]

    @pytest.mark.asyncio
    async def test_cancelling_wait_closed_leaves_reader_running(self):
        async with FakeIRCServer() as server:
            session = IRCSession(make_identity(port=server.port))
            session.start()
            await server.wait_for_lines(2)

            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(session.wait_closed(), 0.1)

            assert session.state is ConnectionState.CONNECTED
            await session.close()

    @pytest.mark.asyncio
    async def test_close_without_start(self):
        session = IRCSession(make_identity())
        await session.close()
        assert [evt async for evt in session.events()] == []
        assert session.state is ConnectionState.CLOSED


class TestSessionFailures:
    @pytest.mark.asyncio
    async def test_refused_connection(self):
        session = IRCSession(make_identity(port=free_port()))
        session.start()
        events = await collect_events(session)

        assert [type(e) for e in events] == [ConnectionPending, ConnectionFailed]
        assert session.state is ConnectionState.ERRORED

    @pytest.mark.asyncio
    async def test_handshake_write_failure(self):
        session = IRCSession(
            make_identity(),
            open_connection=_opener(asyncio.StreamReader(), ClosedWriter()),
        )
        session.start()
        events = await collect_events(session)

        assert [type(e) for e in events] == [ConnectionPending, ConnectionEstablished, ConnectionFailed]
        assert isinstance(events[-1].error, HandshakeWriteError)
        assert events[-1].error.details["command"] == "NICK"

    @pytest.mark.asyncio
    async def test_password_dropped_when_handshake_write_fails(self):
        session = IRCSession(
            make_identity(password="pw"),
            open_connection=_opener(asyncio.StreamReader(), ClosedWriter()),
        )
        session.start()
        events = await collect_events(session)

        assert events[-1].error.details["command"] == "PASS"
        assert session.connection.identity.password == ""

    @pytest.mark.asyncio
    async def test_read_failure(self):
        reader = asyncio.StreamReader()
        reader.set_exception(ConnectionResetError("reset by peer"))
        writer = RecordingWriter()
        session = IRCSession(make_identity(), open_connection=_opener(reader, writer))
        session.start()
        events = await collect_events(session)

        assert [type(e) for e in events] == [ConnectionPending, ConnectionEstablished, ConnectionFailed]
        assert isinstance(events[-1].error, TransportError)
        assert writer.data == b"NICK alice\r\nUSER alice 0 * :Alice Liddell\r\n"

        # No further events after the terminal one
        await session.close()
        assert session.queue.empty()

    def test_invalid_identity_rejected(self):
        with pytest.raises(ConfigurationError):
            IRCSession(make_identity(server=""))
