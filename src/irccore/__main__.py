"""Entrypoint. Loads config, connects every configured identity and logs the event stream."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from loguru import logger

from irccore import __version__
from irccore.client import IRCClient
from irccore.config import Config, cfg, load_config_with_env
from irccore.core.errors import ConfigurationError
from irccore.gateway import Bus, LogTarget
from irccore.protocol.casemapping import get_casemapping


def setup_logging(verbose: bool = False, default_level: str = "INFO") -> str:
    """Configure loguru. Replace default logging.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise default_level."""
    level = default_level
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=("<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"),
    )
    return level


def reload_config(config_path: Path) -> Config:
    """Load config from path and update global cfg."""
    data = load_config_with_env(config_path)
    cfg.reload(data)
    return cfg


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="irccore: connect to IRC servers and log the event stream")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entrypoint."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose)

    if not args.config.exists():
        logger.error("Config file not found: {}", args.config)
        sys.exit(1)

    try:
        config = reload_config(args.config)
    except ConfigurationError as exc:
        logger.error("Invalid config {}: {}", args.config, exc)
        sys.exit(1)
    setup_logging(args.verbose, config.log_level)
    logger.info("Config loaded from {}", args.config)

    if not config.connections:
        logger.error("No connections configured in {}", args.config)
        sys.exit(1)

    asyncio.run(_run(config))


async def _run(config: Config) -> None:
    """Connect all identities and wait until every connection has terminated."""
    bus = Bus()
    bus.register(LogTarget())
    normalize = get_casemapping(config.casemapping) if config.casemapping else None
    client = IRCClient(bus, queue_size=config.event_queue_size, normalize=normalize)
    for identity in config.identities():
        client.connect(identity)
    logger.info("irccore ready: {} connections", len(client.sessions))

    try:
        await client.wait_all()
    except asyncio.CancelledError:
        logger.info("irccore shutting down")
        raise
    finally:
        await client.close_all()


if __name__ == "__main__":
    main()
