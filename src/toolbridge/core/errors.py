"""
Error hierarchy for toolbridge.

Startup failures (:class:`ConfigurationError`, :class:`BridgeConnectionError`) are fatal and
abort the process.  :class:`ResolutionError` and its subclasses are raised while answering a
single query; the orchestrator turns them into an inline ``"Error: ..."`` reply so the
interactive session keeps running.
"""


class BridgeError(Exception):
    """Base class for all toolbridge errors."""


class ConfigurationError(BridgeError):
    """Raised when required configuration (e.g. the model API key) is missing."""


class BridgeConnectionError(BridgeError, ConnectionError):
    """Raised when the tool server cannot be launched, initialised, or queried for its tools."""


class ResolutionError(BridgeError):
    """Raised when a query cannot be resolved (model API or tool failure)."""


class ModelAPIError(ResolutionError):
    """Raised when the language-model API call fails."""


class ToolExecutionError(ResolutionError):
    """Raised when a requested tool cannot run or fails."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)
