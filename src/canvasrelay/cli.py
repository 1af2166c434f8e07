"""Command-line interface for canvasrelay.

Provides the main entry point for starting the relay server, checking
command files offline, and inspecting a running relay.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="canvasrelay",
        description="Real-time relay of drawing commands to canvas clients",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/canvasrelay.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the relay server")
    serve_parser.add_argument("--host", type=str, default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")
    serve_parser.add_argument(
        "--delivery-mode", choices=["push", "pull"], default=None,
        help="Whether a push advances commands to 'sent' (push) or leaves them pending (pull)",
    )
    serve_parser.add_argument(
        "--no-mcp", action="store_true",
        help="Do not mount the MCP endpoint",
    )

    validate_parser = subparsers.add_parser(
        "validate", help="Check a file of drawing commands without submitting it",
    )
    validate_parser.add_argument("file", type=Path, help="File with one command per line")

    stats_parser = subparsers.add_parser("stats", help="Show stats from a running relay")
    stats_parser.add_argument(
        "--url", type=str, default=None,
        help="Base URL of the relay (default: from configuration)",
    )

    return parser.parse_args(argv)


def _validate(path: Path) -> int:
    """Validate a command file and print any errors."""
    from canvasrelay.validation import validate_commands

    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 2

    result = validate_commands(path.read_text())
    if result.valid:
        print(f"OK -- {path} is valid.")
        return 0
    print(f"{len(result.errors)} error(s) in {path}:")
    for error in result.errors:
        print(f"  {error}")
    return 1


async def _stats(base_url: str) -> int:
    """Fetch and print /stats from a running relay."""
    import httpx

    try:
        async with httpx.AsyncClient(base_url=base_url, timeout=5.0) as client:
            r = await client.get("/stats")
            r.raise_for_status()
            data = r.json()
    except httpx.HTTPError as e:
        print(f"Could not reach relay at {base_url}: {e}", file=sys.stderr)
        return 1

    stats = data["stats"]
    sessions = data["sessions"]
    print(f"Commands:  {stats['total']} total, {stats['pending']} pending, "
          f"{stats['sent']} sent, {stats['executed']} executed, {stats['error']} error")
    print(f"Clients:   {data['connected_clients']} connected")
    print(f"Sessions:  {sessions['active']} active / {sessions['total']} total")
    if data["recent_commands"]:
        print("\nRecent commands:")
        for command in data["recent_commands"]:
            first_line = command["payload"].splitlines()[0] if command["payload"] else ""
            print(f"  {command['id']}  {command['state']:<8}  {first_line[:60]}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the canvasrelay CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from canvasrelay.config.settings import load_settings
    from canvasrelay.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        import uvicorn

        from canvasrelay.domain.models import DeliveryMode
        from canvasrelay.endpoint.server import create_app_from_settings

        if args.host:
            settings.server.host = args.host
        if args.port:
            settings.server.port = args.port
        if args.delivery_mode:
            settings.relay.delivery_mode = DeliveryMode(args.delivery_mode)
        if args.no_mcp:
            settings.mcp.enabled = False

        srv = settings.server
        logger.info("Starting canvas relay on %s:%d", srv.host, srv.port)
        app = create_app_from_settings(settings)
        uvicorn.run(
            app,
            host=srv.host,
            port=srv.port,
            log_level=settings.logging.level.lower(),
        )

    elif args.command == "validate":
        sys.exit(_validate(args.file))

    elif args.command == "stats":
        base_url = args.url or f"http://{settings.server.host}:{settings.server.port}"
        sys.exit(asyncio.run(_stats(base_url)))


if __name__ == "__main__":
    main()
