"""Command-line interface for tetrisbridge.

Provides the main entry point for serving the HTTP bridge, running a
single message through the collaborator locally, or sending a message
to a running bridge.
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
        prog="tetrisbridge",
        description="HTTP bridge to the tetris-server collaborator program",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/tetrisbridge.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP bridge server")
    serve_parser.add_argument("--host", type=str, default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")

    invoke_parser = subparsers.add_parser(
        "invoke", help="Run one message through the collaborator and print its output",
    )
    invoke_parser.add_argument("message", type=str, help="Message written to the collaborator")

    send_parser = subparsers.add_parser("send", help="Send one message to a running bridge")
    send_parser.add_argument("message", type=str, help="Message to send")
    send_parser.add_argument(
        "--url", type=str, default=None,
        help="Bridge base URL (default: http://localhost:<server.port>)",
    )

    return parser.parse_args(argv)


async def _invoke(settings, message: str) -> int:
    """Run the bridge once and write the collaborator's stdout to ours."""
    from tetrisbridge.bridge.core import RequestBridge

    bridge = RequestBridge.from_config(settings.collaborator)
    result = await bridge.run(message)
    sys.stdout.buffer.write(result.output)
    sys.stdout.buffer.flush()
    if not result.ok:
        logger.error("Collaborator run ended with %s", result.outcome)
        return 1
    return 0


async def _send(settings, message: str, url: str | None) -> int:
    """Send a message to a running bridge and print the answer."""
    from tetrisbridge.client import BridgeClient, BridgeClientError

    base_url = url or f"http://localhost:{settings.server.port}"
    async with BridgeClient(
        base_url=base_url,
        route=settings.server.route,
        param=settings.server.param_name,
    ) as client:
        try:
            answer = await client.send(message)
        except BridgeClientError as e:
            logger.error("%s", e)
            return 1
    sys.stdout.buffer.write(answer)
    sys.stdout.buffer.flush()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the tetrisbridge CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return 0

    from tetrisbridge.config.settings import load_settings
    from tetrisbridge.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        logger.info("Starting bridge server")
        from tetrisbridge.endpoint.server import create_app
        import uvicorn
        app = create_app(settings)
        uvicorn.run(
            app,
            host=args.host or settings.server.host,
            port=args.port or settings.server.port,
        )
        return 0

    if args.command == "invoke":
        return asyncio.run(_invoke(settings, args.message))

    if args.command == "send":
        return asyncio.run(_send(settings, args.message, args.url))

    return 0


if __name__ == "__main__":
    sys.exit(main())
