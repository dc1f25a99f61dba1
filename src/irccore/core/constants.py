"""Protocol constants."""

from __future__ import annotations

from typing import Literal

CTCP_DELIMITER = "\x01"
CTCP_ACTION = f"{CTCP_DELIMITER}ACTION"

LINE_SEPARATOR = "\r\n"
# Partial lines longer than this are discarded (IRCv3 tags + 512 byte body fits well below)
MAX_LINE_LENGTH = 16384
READ_CHUNK_SIZE = 4096

# Numeric replies
RPL_WELCOME = "001"
RPL_ISUPPORT = "005"
RPL_AWAY = "301"
RPL_TOPIC = "332"
RPL_NAMREPLY = "353"
RPL_ENDOFNAMES = "366"
RPL_MOTD = "372"
RPL_MOTDSTART = "375"
RPL_ENDOFMOTD = "376"

# Membership prefixes that may precede a nick in a NAMES reply
NAMES_PREFIXES = "~&@%+"

DiagnosticKind = Literal["unhandled", "server_error", "decode_error", "unknown_command"]
