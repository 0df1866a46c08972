"""Dispatches tool calls to the connected tool server and wraps errors."""

import logging
from typing import (
    Any,
    Dict,
    List,
    Protocol,
)

from mcp import types

from toolbridge.core.errors import ToolExecutionError

logger = logging.getLogger(__name__)

EMPTY_RESULT_TEXT = "(no content)"


class ToolChannel(Protocol):
    """The part of an MCP client session used to run tools."""

    async def call_tool(
        self, name: str, arguments: Dict[str, Any] | None = None
    ) -> types.CallToolResult:
        """Invoke *name* on the tool server."""


def result_to_content(result: types.CallToolResult) -> List[Dict[str, Any]]:
    """
    Convert an MCP tool result into content blocks the model API accepts.

    Text blocks are passed through; any other block (image, resource, ...) is rendered as a text
    block holding its JSON form.  The model API rejects empty content, so a result without blocks
    becomes a single placeholder text block.
    """
    blocks: List[Dict[str, Any]] = []
    for block in result.content:
        if isinstance(block, types.TextContent):
            blocks.append({"type": "text", "text": block.text})
        else:
            blocks.append({"type": "text", "text": block.model_dump_json(exclude_none=True)})

    if not blocks:
        blocks.append({"type": "text", "text": EMPTY_RESULT_TEXT})
    return blocks


async def execute_tool(
    channel: ToolChannel, name: str, args: Dict[str, Any] | None = None
) -> List[Dict[str, Any]]:
    """
    Invoke *name* on *channel* with *args* and return the result as content blocks.

    Parameters
    ----------
    channel:
        The connected tool channel.
    name:
        The tool name exactly as the model requested it.  It is not checked against the
        catalog; unknown names surface as whatever the tool server reports.
    args:
        Arguments passed verbatim to the tool.  If *None*, an empty dict is assumed.

    Returns
    -------
    list of dict
        Content blocks ready to be appended to the conversation.

    Raises
    ------
    ToolExecutionError
        If the channel raises while invoking the tool.
    """

    if args is None:
        args = {}

    try:
        logger.debug("Executing tool '%s' with args=%s", name, args)
        result = await channel.call_tool(name, args)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionError(name, f"Tool '{name}' raised an error: {exc}") from exc

    if result.isError:
        # The server's error text goes back to the model like any other result.
        logger.warning("Tool '%s' reported an error: %s", name, result.content)

    return result_to_content(result)
