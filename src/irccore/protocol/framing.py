"""Split an incoming byte stream into protocol lines."""

from __future__ import annotations

from loguru import logger

from irccore.core.constants import MAX_LINE_LENGTH


class LineBuffer:
    """Accumulates bytes across reads and yields complete lines.

    Lines end with LF; a trailing CR is stripped so both CRLF and bare LF work.
    Blank lines are skipped. A partial line that grows past max_line_length
    without a terminator is discarded.
    """

    def __init__(self, max_line_length: int = MAX_LINE_LENGTH) -> None:
        self._buffer = b""
        self._max_line_length = max_line_length
        self._discarding = False
        self.discarded = 0

    def feed(self, data: bytes) -> list[bytes]:
        self._buffer += data
        lines: list[bytes] = []
        while b"\n" in self._buffer:
            line, self._buffer = self._buffer.split(b"\n", 1)
            if self._discarding:
                # Tail of an overlong line
                self._discarding = False
                continue
            line = line.rstrip(b"\r")
            if line.strip():
                lines.append(line)
        if len(self._buffer) > self._max_line_length:
            logger.warning(
                "Discarding partial line over {} bytes without terminator",
                self._max_line_length,
            )
            self._buffer = b""
            self._discarding = True
            self.discarded += 1
        return lines

    @property
    def pending(self) -> bytes:
        """Bytes of the incomplete line currently buffered."""
        return self._buffer
