"""Nickname comparison under a server casemapping.

IRC casemapping is server-defined (ISUPPORT ``CASEMAPPING``), so nickname equality
always goes through a pluggable normaliser instead of a hardcoded ``lower()``.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Callable

from irccore.core.errors import ConfigurationError

NameNormalizer = Callable[[str], str]

_RFC1459 = str.maketrans({"[": "{", "]": "}", "\\": "|", "~": "^"})
_STRICT_RFC1459 = str.maketrans({"[": "{", "]": "}", "\\": "|"})


def ascii_lower(name: str) -> str:
    return "".join(chr(ord(c) + 32) if "A" <= c <= "Z" else c for c in name)


def rfc1459_lower(name: str) -> str:
    return ascii_lower(name).translate(_RFC1459)


def strict_rfc1459_lower(name: str) -> str:
    return ascii_lower(name).translate(_STRICT_RFC1459)


def unicode_fold(name: str) -> str:
    """Case-insensitive, Unicode-equivalent form (NFKC + casefold)."""
    return unicodedata.normalize("NFKC", name).casefold()


CASEMAPPINGS: dict[str, NameNormalizer] = {
    "ascii": ascii_lower,
    "rfc1459": rfc1459_lower,
    "strict-rfc1459": strict_rfc1459_lower,
    "rfc1459-strict": strict_rfc1459_lower,
    "unicode": unicode_fold,
}

DEFAULT_CASEMAPPING = "unicode"


def get_casemapping(name: str | None) -> NameNormalizer:
    """Look up a normaliser by casemapping name; None gives the default."""
    key = (name or DEFAULT_CASEMAPPING).strip().lower()
    try:
        return CASEMAPPINGS[key]
    except KeyError:
        raise ConfigurationError(
            f"unknown casemapping {name!r}",
            code="unknown_casemapping",
            details={"known": sorted(CASEMAPPINGS)},
        ) from None


def equal_names(a: str, b: str, normalize: NameNormalizer = unicode_fold) -> bool:
    return normalize(a) == normalize(b)
