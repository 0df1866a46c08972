"""
Query orchestration for toolbridge.

A query is resolved with a fixed two-round protocol:

1. **Initial round**: the query is sent to the model together with the tool catalog.  The reply
   is a list of text and ``tool_use`` items.
2. **Follow-up round**: for every ``tool_use`` item, in order, the tool is executed, its result is
   appended to the conversation, and the model is asked once more, *without* tools, to turn
   the result into an answer.

:class:`QueryResolution` runs this as a small state machine.  The only transition into
:attr:`ResolutionState.AWAITING_FOLLOWUP` comes from :attr:`ResolutionState.EXECUTING_TOOL`, and
the follow-up call cannot carry tools, so a resolution never goes deeper than one tool round.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from enum import Enum
from typing import (
    Deque,
    List,
)

from toolbridge.agent.model_client import BaseModelClient
from toolbridge.agent.tool_executor import execute_tool
from toolbridge.core.errors import ResolutionError
from toolbridge.core.schema import (
    ConversationTurn,
    ModelResponseContentItem,
    SessionContext,
    TextItem,
    ToolUseItem,
)

logger = logging.getLogger(__name__)


class ResolutionState(Enum):
    """States of a single query resolution."""

    AWAITING_INITIAL_RESPONSE = "awaiting_initial_response"
    EXECUTING_TOOL = "executing_tool"
    AWAITING_FOLLOWUP = "awaiting_followup"
    DONE = "done"


def format_tool_call(item: ToolUseItem) -> str:
    """Diagnostic line shown to the operator for each executed tool."""
    args = json.dumps(item.arguments, separators=(",", ":"))
    return f"[Calling tool {item.tool_name} with args {args}]"


class QueryResolution:
    """
    Resolve one query against a connected session.

    A fresh instance (and therefore a fresh conversation) is created per query.
    """

    def __init__(self, context: SessionContext, model: BaseModelClient, query: str) -> None:
        self.context = context
        self.model = model
        self.messages: List[ConversationTurn] = [ConversationTurn(role="user", content=query)]
        self.output: List[str] = []
        self.state = ResolutionState.AWAITING_INITIAL_RESPONSE
        self._pending: Deque[ModelResponseContentItem] = deque()
        self._current_tool: ToolUseItem | None = None

    async def run(self) -> str:
        """Drive the state machine to :attr:`ResolutionState.DONE` and return the joined output."""
        while self.state is not ResolutionState.DONE:
            if self.state is ResolutionState.AWAITING_INITIAL_RESPONSE:
                await self._initial_round()
            elif self.state is ResolutionState.EXECUTING_TOOL:
                await self._execute_tool()
            elif self.state is ResolutionState.AWAITING_FOLLOWUP:
                await self._follow_up_round()
        return "\n".join(self.output)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------
    async def _initial_round(self) -> None:
        logger.debug(
            "Resolving query with %d messages, tools: %s",
            len(self.messages),
            self.context.tool_names,
        )
        items = await self.model.create_initial(self.messages, self.context.tools)
        self._pending.extend(items)
        self._advance()

    async def _execute_tool(self) -> None:
        item = self._current_tool
        if item is None:
            raise ResolutionError(f"No tool request to execute in state {self.state.value}")
        result = await execute_tool(self.context.channel, item.tool_name, item.arguments)
        self.output.append(format_tool_call(item))
        self.messages.append(ConversationTurn(role="user", content=result))
        self.state = ResolutionState.AWAITING_FOLLOWUP

    async def _follow_up_round(self) -> None:
        items = await self.model.create_follow_up(self.messages)
        # Only a leading text item is used; later items, including nested tool
        # requests, are dropped.
        if items and isinstance(items[0], TextItem):
            self.output.append(items[0].text)
        elif items:
            logger.debug("Ignoring non-text follow-up item: %s", items[0].kind)
        self._current_tool = None
        self._advance()

    def _advance(self) -> None:
        """Consume queued initial-round items until a tool must run or the queue is empty."""
        while self._pending:
            item = self._pending.popleft()
            if isinstance(item, TextItem):
                self.output.append(item.text)
            else:
                self._current_tool = item
                self.state = ResolutionState.EXECUTING_TOOL
                return
        self.state = ResolutionState.DONE


async def resolve(context: SessionContext, model: BaseModelClient, query: str) -> str:
    """
    Resolve *query* and return the text to show the operator.

    Never raises for ordinary failures: a model, tool, or argument error is returned as a
    string starting with ``"Error: "`` so the interactive session keeps going.
    """
    try:
        return await QueryResolution(context, model, query).run()
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Failed to resolve query")
        return f"Error: {str(exc) or 'Unknown error occurred'}"
