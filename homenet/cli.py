"""Command-line interface for homenet."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import HomenetController
from .config import ConfigError, HomenetConfig, load_config
from .core.models import Role
from .discovery import DiscoveryError
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="homenet", description="Home-automation controller for mDNS sensors and actuators"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the controller")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    announce_parser = subparsers.add_parser(
        "announce", help="Advertise a device on the network until interrupted"
    )
    announce_parser.add_argument(
        "--role", choices=[role.value for role in Role], required=True
    )
    announce_parser.add_argument(
        "--name", required=True, help="Instance name, conventionally <kind>_<device id>"
    )
    announce_parser.add_argument("--host", required=True, help="IP address of the device")
    announce_parser.add_argument("--port", type=int, required=True)

    return parser


async def _announce(config: HomenetConfig, role: Role, name: str, host: str, port: int) -> None:
    from .discovery.zeroconf_backend import ZeroconfBackend

    discovery = config.discovery
    group = discovery.sensor_group if role is Role.SENSOR else discovery.actuator_group
    backend = ZeroconfBackend(
        domain=discovery.service_domain, resolve_timeout_ms=discovery.resolve_timeout_ms
    )
    try:
        await backend.announce(name, group, host, port)
        await asyncio.Event().wait()
    finally:
        await backend.aclose()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    if args.command == "start":
        HomenetController.start(config)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "announce":
        configure_logging(config.logging.level, log_network=config.logging.log_network)
        try:
            asyncio.run(_announce(config, Role(args.role), args.name, args.host, args.port))
        except KeyboardInterrupt:
            LOGGER.info("Announcement withdrawn")
        except (DiscoveryError, ValueError) as exc:
            LOGGER.error("Announce failed: %s", exc)
            return 1
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
