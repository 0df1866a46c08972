"""
Model client interface for toolbridge.

This module is the only place that *directly* calls the language-model API.  Everything else
(orchestrator, tool execution, interactive session) stays model-agnostic and works with
:class:`~toolbridge.core.schema.ModelResponseContentItem` values.

The two-round protocol is part of the interface itself: :meth:`BaseModelClient.create_initial`
receives the tool catalog, while :meth:`BaseModelClient.create_follow_up` has no way to pass one,
so a follow-up round can never offer tools to the model.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Sequence,
)

import anthropic
from pydantic import ValidationError

from toolbridge.config import BridgeConfig
from toolbridge.core.errors import (
    ModelAPIError,
    ResolutionError,
)
from toolbridge.core.schema import (
    ConversationTurn,
    ModelResponseContentItem,
    TextItem,
    ToolDescriptor,
    ToolUseItem,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response conversion
# ---------------------------------------------------------------------------
def to_content_items(blocks: Iterable[Any]) -> List[ModelResponseContentItem]:
    """
    Convert SDK content blocks into :data:`ModelResponseContentItem` values.

    Only ``text`` and ``tool_use`` blocks are kept; other block types (thinking, server-side
    tools, ...) are skipped.

    Raises
    ------
    ResolutionError
        If a ``tool_use`` block carries arguments that are not a mapping.
    """
    items: List[ModelResponseContentItem] = []
    for block in blocks:
        block_type = getattr(block, "type", None)
        if block_type == "text":
            items.append(TextItem(text=block.text))
        elif block_type == "tool_use":
            try:
                items.append(ToolUseItem(tool_name=block.name, arguments=block.input, id=block.id))
            except ValidationError as exc:
                raise ResolutionError(
                    f"Malformed arguments for tool '{block.name}': {block.input!r}"
                ) from exc
        else:
            logger.debug("Skipping unsupported content block of type %r", block_type)
    return items


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelClient(ABC):
    """Abstract model client returning content items for a conversation."""

    @abstractmethod
    async def create_initial(
        self, messages: Sequence[ConversationTurn], tools: Sequence[ToolDescriptor]
    ) -> List[ModelResponseContentItem]:
        """First round: send the conversation together with the tool catalog."""

    @abstractmethod
    async def create_follow_up(
        self, messages: Sequence[ConversationTurn]
    ) -> List[ModelResponseContentItem]:
        """Follow-up round: send the extended conversation without any tools."""


# ---------------------------------------------------------------------------
# Concrete clients
# ---------------------------------------------------------------------------
class AnthropicModelClient(BaseModelClient):
    """Anthropic Claude client built on the async Messages API."""

    def __init__(self, config: BridgeConfig, client: anthropic.AsyncAnthropic | None = None):
        self.config = config
        self._client = client or anthropic.AsyncAnthropic(api_key=config.api_key)

    async def create_initial(
        self, messages: Sequence[ConversationTurn], tools: Sequence[ToolDescriptor]
    ) -> List[ModelResponseContentItem]:
        return await self._create(messages, tools=[tool.to_api_param() for tool in tools])

    async def create_follow_up(
        self, messages: Sequence[ConversationTurn]
    ) -> List[ModelResponseContentItem]:
        return await self._create(messages)

    async def _create(
        self,
        messages: Sequence[ConversationTurn],
        tools: List[Dict[str, Any]] | None = None,
    ) -> List[ModelResponseContentItem]:
        request: Dict[str, Any] = {
            "model": self.config.model_id,
            "max_tokens": self.config.max_tokens,
            "messages": [turn.to_api_param() for turn in messages],
        }
        if tools is not None:
            request["tools"] = tools

        logger.debug("Anthropic request: %s", request)
        try:
            response = await self._client.messages.create(**request)
        except anthropic.APIError as exc:
            logger.error("Anthropic API error: %s", exc)
            raise ModelAPIError(str(exc)) from exc

        logger.debug("Anthropic response: %s", response)
        return to_content_items(response.content)
