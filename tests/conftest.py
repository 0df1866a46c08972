"""
Shared stubs for toolbridge tests.

The MCP server and the Anthropic API are replaced by in-memory stand-ins that record every call.
"""

from collections import deque
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

import pytest
from mcp import types

from toolbridge.agent.model_client import BaseModelClient
from toolbridge.config import BridgeConfig
from toolbridge.core.schema import (
    ConversationTurn,
    ModelResponseContentItem,
    SessionContext,
    ToolDescriptor,
)


class StubChannel:
    """Tool channel returning canned text per tool name, or raising *error* on every call."""

    def __init__(self, results: Dict[str, str] | None = None, error: Exception | None = None):
        self.results = results or {}
        self.error = error
        self.calls: List[tuple[str, Dict[str, Any] | None]] = []

    async def call_tool(
        self, name: str, arguments: Dict[str, Any] | None = None
    ) -> types.CallToolResult:
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        text = self.results.get(name, "result text")
        return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


class StubModel(BaseModelClient):
    """Model client replaying scripted responses and recording each request."""

    def __init__(
        self,
        initial: List[ModelResponseContentItem] | None = None,
        follow_ups: Sequence[List[ModelResponseContentItem]] = (),
        error: Exception | None = None,
    ):
        self.initial = initial or []
        self.follow_ups = deque(follow_ups)
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def create_initial(
        self, messages: Sequence[ConversationTurn], tools: Sequence[ToolDescriptor]
    ) -> List[ModelResponseContentItem]:
        self.calls.append({"round": "initial", "messages": list(messages), "tools": tuple(tools)})
        if self.error is not None:
            raise self.error
        return self.initial

    async def create_follow_up(
        self, messages: Sequence[ConversationTurn]
    ) -> List[ModelResponseContentItem]:
        self.calls.append({"round": "follow_up", "messages": list(messages)})
        return self.follow_ups.popleft() if self.follow_ups else []

    def rounds(self) -> List[str]:
        return [call["round"] for call in self.calls]


WEB_SEARCH = ToolDescriptor(
    name="web_search",
    description="Search the web",
    input_schema={"type": "object", "properties": {"query": {"type": "string"}}},
)


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(api_key="test-key", model_id="test-model", max_tokens=1000)


@pytest.fixture
def channel() -> StubChannel:
    return StubChannel()


@pytest.fixture
def context(channel: StubChannel) -> SessionContext:
    return SessionContext(channel=channel, tools=(WEB_SEARCH,))
