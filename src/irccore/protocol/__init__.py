"""IRC protocol: line framing, decoding, nickname casemapping, translation to events."""

from irccore.protocol.casemapping import equal_names, get_casemapping
from irccore.protocol.framing import LineBuffer
from irccore.protocol.parsing import IRCLine, decode_line
from irccore.protocol.translator import ProtocolTranslator

__all__ = ["IRCLine", "LineBuffer", "ProtocolTranslator", "decode_line", "equal_names", "get_casemapping"]
