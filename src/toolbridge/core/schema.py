"""
Schema definitions for model <-> orchestrator <-> tool server messages.

These data models serve as the contract between the language-model API, the query orchestrator,
and the MCP tool server.  We keep them separate from runtime logic so they can be imported
anywhere without side-effects.
"""

from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Tuple,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
)


class ToolDescriptor(BaseModel):
    """A tool discovered on the tool server, in the shape the model API expects."""

    name: str = Field(..., description="Tool name, unique within a catalog")
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(
        default_factory=dict, description="JSON schema for the tool arguments"
    )

    class Config:
        """Configuration for the pydantic model."""

        frozen = True

    def to_api_param(self) -> Dict[str, Any]:
        """Return the tool definition as sent to the model API."""
        param: Dict[str, Any] = {"name": self.name, "input_schema": self.input_schema}
        if self.description is not None:
            param["description"] = self.description
        return param


ToolCatalog = Tuple[ToolDescriptor, ...]
"""Tools in discovery order, fixed for the lifetime of a connection."""


class ConversationTurn(BaseModel):
    """One message of the in-flight exchange for a single query."""

    role: Literal["user", "assistant"]
    content: Union[str, List[Dict[str, Any]]]

    def to_api_param(self) -> Dict[str, Any]:
        """Return the turn as a model API message."""
        return {"role": self.role, "content": self.content}


class TextItem(BaseModel):
    """Plain text produced by the model."""

    kind: Literal["text"] = "text"
    text: str


class ToolUseItem(BaseModel):
    """A request from the model to run a tool."""

    kind: Literal["tool_use"] = "tool_use"
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = None


ModelResponseContentItem = Annotated[Union[TextItem, ToolUseItem], Field(discriminator="kind")]


class SessionContext(BaseModel):
    """The connected tool channel plus its catalog, shared read-only by every query."""

    channel: Any = Field(..., description="Connected tool channel (an MCP client session)")
    tools: ToolCatalog = ()

    class Config:
        """Configuration for the pydantic model."""

        frozen = True
        arbitrary_types_allowed = True

    @property
    def tool_names(self) -> List[str]:
        """Names of the catalog's tools, in discovery order."""
        return [tool.name for tool in self.tools]
