"""Test byte stream framing."""

from irccore.protocol.framing import LineBuffer


class TestLineBuffer:
    """Test LineBuffer."""

    def test_crlf_lines(self):
        buf = LineBuffer()
        assert buf.feed(b"one\r\ntwo\r\n") == [b"one", b"two"]
        assert buf.pending == b""

    def test_bare_lf_lines(self):
        assert LineBuffer().feed(b"one\ntwo\n") == [b"one", b"two"]

    def test_partial_line_is_kept(self):
        buf = LineBuffer()
        assert buf.feed(b"hel") == []
        assert buf.pending == b"hel"
        assert buf.feed(b"lo\r\n") == [b"hello"]

    def test_split_between_cr_and_lf(self):
        buf = LineBuffer()
        assert buf.feed(b"hello\r") == []
        assert buf.feed(b"\nworld\r\n") == [b"hello", b"world"]

    def test_blank_lines_are_skipped(self):
        assert LineBuffer().feed(b"\r\n\r\none\r\n   \r\n") == [b"one"]

    def test_overlong_partial_line_is_discarded(self):
        # Arrange
        buf = LineBuffer(max_line_length=8)

        # Act
        first = buf.feed(b"0123456789")
        second = buf.feed(b"tail\r\nnext\r\n")

        # Assert
        assert first == []
        assert second == [b"next"]
        assert buf.discarded == 1

    def test_long_complete_line_is_kept(self):
        buf = LineBuffer(max_line_length=8)
        assert buf.feed(b"0123456789\r\n") == [b"0123456789"]
        assert buf.discarded == 0
