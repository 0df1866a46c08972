"""Interactive terminal session for toolbridge."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import (
    Any,
    Callable,
    Tuple,
)

from toolbridge.agent.model_client import BaseModelClient
from toolbridge.agent.orchestrator import resolve
from toolbridge.common import (
    AnsiColors,
    colored_print,
)
from toolbridge.core.schema import SessionContext

logger = logging.getLogger(__name__)

QUIT_COMMAND = "quit"

LineReader = Callable[[str], Tuple[str, bool]]


# ---------------------------------------------------------------------------
# Line input
# ---------------------------------------------------------------------------
def get_user_message(prompt: str = "") -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        return input(prompt), True
    except (EOFError, KeyboardInterrupt):
        return "", False


def _settle(future: asyncio.Future, result: Any, error: BaseException | None) -> None:
    if future.done():  # the waiting session was cancelled
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def read_line_off_loop(read_line: LineReader, prompt: str) -> Tuple[str, bool]:
    """
    Run the blocking *read_line* on a daemon thread and await its result.

    The event loop (and the tool server's stdio reader) keeps running while the operator types.
    A daemon thread is used so a read still pending at shutdown never blocks interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def worker() -> None:
        try:
            result, error = read_line(prompt), None
        except BaseException as exc:  # pylint: disable=broad-except
            result, error = None, exc
        try:
            loop.call_soon_threadsafe(_settle, future, result, error)
        except RuntimeError:
            pass  # loop already closed after Ctrl+C

    threading.Thread(target=worker, name="toolbridge-input", daemon=True).start()
    return await future


# ---------------------------------------------------------------------------
# Interactive Session
# ---------------------------------------------------------------------------
def is_quit_command(message: str) -> bool:
    """Return True if *message* asks to end the session (case-insensitive ``quit``)."""
    return message.strip().lower() == QUIT_COMMAND


async def run_session(
    context: SessionContext,
    model: BaseModelClient,
    read_line: LineReader = get_user_message,
) -> None:
    """
    Read queries until the operator types ``quit``, resolving and printing each one in turn.

    Input that cannot be read (end of input, Ctrl+C at the prompt) also ends the session.
    """
    colored_print("\nMCP Client Started!", AnsiColors.GREEN)
    colored_print(f"Available tools: {', '.join(context.tool_names) or '(none)'}", AnsiColors.GREEN)
    colored_print(f"Type your queries or '{QUIT_COMMAND}' to exit.", AnsiColors.GREEN)

    while True:
        try:
            message, ok = await read_line_off_loop(read_line, "\nQuery: ")
        except (asyncio.CancelledError, KeyboardInterrupt):
            ok = False
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if is_quit_command(message):
            break

        logger.debug("Resolving query: %s", message)
        response = await resolve(context, model, message)
        logger.debug("Query response: %s", response)

        color = AnsiColors.RED if response.startswith("Error: ") else AnsiColors.YELLOW
        colored_print("\n" + response, color)

    logger.info("Interactive session ended")
