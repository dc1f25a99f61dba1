"""IRC protocol client core: connection lifecycle, line decoding, typed events."""

__version__ = "0.1.0"
