"""
Connection manager for the MCP tool server.

Launches the server script over stdio, performs the protocol handshake, and turns the server's
tool list into the catalog handed to the model.  The resulting :class:`SessionContext` is only
valid inside the :func:`connect` context; leaving it closes the channel and stops the server.
"""

import logging
import os
import sys
from contextlib import (
    AsyncExitStack,
    asynccontextmanager,
)
from importlib.metadata import (
    PackageNotFoundError,
    version,
)
from pathlib import Path
from typing import (
    AsyncIterator,
    Iterable,
    List,
    Tuple,
)

from mcp import (
    ClientSession,
    StdioServerParameters,
    types,
)
from mcp.client.stdio import stdio_client

from toolbridge.config import BridgeConfig
from toolbridge.core.errors import BridgeConnectionError
from toolbridge.core.schema import (
    SessionContext,
    ToolCatalog,
    ToolDescriptor,
)

logger = logging.getLogger(__name__)

CLIENT_NAME = "toolbridge"
try:
    CLIENT_VERSION = version("toolbridge")
except PackageNotFoundError:  # running from a source checkout
    CLIENT_VERSION = "0.0.0"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def resolve_server_command(script_path: str, platform: str | None = None) -> Tuple[str, List[str]]:
    """
    Pick the interpreter for *script_path* from its extension.

    ``.py`` scripts run under ``python`` on Windows and ``python3`` elsewhere; ``.js`` scripts
    run under ``node``.

    Raises
    ------
    BridgeConnectionError
        If the script is neither a ``.py`` nor a ``.js`` file.
    """
    platform = platform or sys.platform
    suffix = Path(script_path).suffix.lower()

    if suffix == ".py":
        command = "python" if platform == "win32" else "python3"
    elif suffix == ".js":
        command = "node"
    else:
        raise BridgeConnectionError("Server script must be a .js or .py file")

    return command, [script_path]


def build_server_parameters(script_path: str, config: BridgeConfig) -> StdioServerParameters:
    """Return launch parameters for the server, propagating the model id in its environment."""
    command, args = resolve_server_command(script_path)
    env = {**os.environ, "ANTHROPIC_MODEL": config.model_id}
    return StdioServerParameters(command=command, args=args, env=env)


def to_tool_descriptor(tool: types.Tool) -> ToolDescriptor:
    """Rename ``inputSchema`` to ``input_schema``; the schema itself is passed through as-is."""
    return ToolDescriptor(
        name=tool.name,
        description=tool.description,
        input_schema=tool.inputSchema,
    )


def build_catalog(tools: Iterable[types.Tool]) -> ToolCatalog:
    """Build the session's tool catalog, keeping discovery order."""
    catalog: List[ToolDescriptor] = []
    seen: set[str] = set()
    for tool in tools:
        if tool.name in seen:
            raise BridgeConnectionError(f"Tool server reported duplicate tool '{tool.name}'")
        seen.add(tool.name)
        catalog.append(to_tool_descriptor(tool))
    return tuple(catalog)


async def _open_session(
    stack: AsyncExitStack, server_params: StdioServerParameters
) -> Tuple[ClientSession, ToolCatalog]:
    """Start the server, complete the handshake, and discover its tools."""
    read_stream, write_stream = await stack.enter_async_context(stdio_client(server_params))
    session = await stack.enter_async_context(
        ClientSession(
            read_stream,
            write_stream,
            client_info=types.Implementation(name=CLIENT_NAME, version=CLIENT_VERSION),
        )
    )
    await session.initialize()

    tools_result = await session.list_tools()
    return session, build_catalog(tools_result.tools)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
@asynccontextmanager
async def connect(script_path: str, config: BridgeConfig) -> AsyncIterator[SessionContext]:
    """
    Connect to the tool server at *script_path* and yield the session context.

    Usage::

        async with connect("server.py", config) as context:
            ...

    Raises
    ------
    BridgeConnectionError
        If the script type is unsupported, the server fails to start or to complete the
        handshake, or tool discovery fails.
    """
    # Raises before any process is started
    server_params = build_server_parameters(script_path, config)

    # Errors are raised only after the stack is closed, so they are not wrapped by the
    # transport's task group on the way out.
    stack = AsyncExitStack()
    try:
        session, catalog = await _open_session(stack, server_params)
    except Exception as exc:  # noqa: BLE001
        await stack.aclose()
        logger.error("Failed to connect to MCP server: %s", exc)
        if isinstance(exc, BridgeConnectionError):
            raise
        raise BridgeConnectionError(f"Failed to connect to MCP server: {exc}") from exc

    logger.info("Connected to server with tools: %s", [tool.name for tool in catalog])
    try:
        yield SessionContext(channel=session, tools=catalog)
    finally:
        await stack.aclose()
        logger.debug("Closed connection to MCP server")
