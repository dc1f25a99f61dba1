"""Diagnostic sink for lines that produce no domain event."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from irccore.core.constants import DiagnosticKind


@dataclass
class Diagnostic:
    """Something worth knowing about that is not part of the event contract."""

    connection_id: str
    kind: DiagnosticKind
    command: str
    message: str
    line: str = ""


DiagnosticSink = Callable[[Diagnostic], None]


def log_diagnostic(diagnostic: Diagnostic) -> None:
    """Default sink: route to loguru. Decode failures and server errors are warnings."""
    level = "WARNING" if diagnostic.kind in ("decode_error", "server_error") else "DEBUG"
    logger.log(
        level,
        "[{}] {} {}: {}",
        diagnostic.connection_id,
        diagnostic.kind,
        diagnostic.command or "-",
        diagnostic.message,
    )
