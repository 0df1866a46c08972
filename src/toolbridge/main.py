"""
toolbridge entry point.

This file handles startup concerns (arg-parsing, config, logging), connects to the MCP tool
server, and launches the interactive session.
"""

import argparse
import asyncio
import logging
import sys

from toolbridge.agent.connection import connect
from toolbridge.agent.model_client import AnthropicModelClient
from toolbridge.client.cli import run_session
from toolbridge.config import (
    BridgeConfig,
    load_config,
    settings,
)
from toolbridge.core.errors import (
    BridgeConnectionError,
    ConfigurationError,
)

logger = logging.getLogger(__name__)

USAGE = "Usage: toolbridge <path_to_server_script>"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Keep SDK transport chatter out of the session
    for noisy in ("httpx", "anthropic", "mcp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


async def run_bridge(server_script: str, config: BridgeConfig) -> None:
    """Connect to *server_script* and run the interactive session until the operator quits."""
    model = AnthropicModelClient(config)
    async with connect(server_script, config) as context:
        await run_session(context, model)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for toolbridge.

    Parses the command line, initializes logging and configuration, then bridges the model API
    and the tool server given on the command line.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="toolbridge", description="Chat with a language model that can call MCP server tools"
    )
    parser.add_argument(
        "server_script",
        nargs="?",
        help="Path to the MCP server script (.py or .js)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    args = parser.parse_args(argv)

    if not args.server_script:
        print(USAGE)
        return

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level

    _init_logging(settings.LOG_LEVEL)

    try:
        config = load_config(settings)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    logger.info("Starting toolbridge [model=%s, server=%s]", config.model_id, args.server_script)

    try:
        asyncio.run(run_bridge(args.server_script, config))
    except BridgeConnectionError as exc:
        logger.error("Could not connect to tool server: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
