"""Tests for launching and discovering tools on the MCP server."""

import asyncio
from contextlib import asynccontextmanager
from importlib.metadata import version
from unittest.mock import patch

import pytest
from mcp import types

from toolbridge.agent.connection import (
    CLIENT_VERSION,
    build_catalog,
    build_server_parameters,
    connect,
    resolve_server_command,
    to_tool_descriptor,
)
from toolbridge.config import BridgeConfig
from toolbridge.core.errors import BridgeConnectionError
from toolbridge.core.schema import SessionContext


class FakeSession:
    """Stand-in for ``mcp.ClientSession`` that records its lifecycle."""

    instances: list["FakeSession"] = []

    def __init__(self, read_stream, write_stream, **kwargs):
        self.streams = (read_stream, write_stream)
        self.kwargs = kwargs
        self.initialized = False
        self.close_count = 0
        self.fail_initialize = False
        FakeSession.instances.append(self)

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close_count += 1

    async def initialize(self) -> None:
        if self.fail_initialize:
            raise RuntimeError("handshake failed")
        self.initialized = True

    async def list_tools(self) -> types.ListToolsResult:
        return types.ListToolsResult(
            tools=[
                types.Tool(name="web_search", description="Search", inputSchema={"type": "object"}),
                types.Tool(name="get_time", inputSchema={"type": "object", "properties": {}}),
            ]
        )


@asynccontextmanager
async def fake_stdio_client(server_params):
    yield ("read", "write")


@pytest.fixture(autouse=True)
def _reset_sessions():
    FakeSession.instances = []


def _connect_and_collect(script: str, config: BridgeConfig) -> SessionContext:
    async def _run() -> SessionContext:
        async with connect(script, config) as context:
            return context

    return asyncio.run(_run())


# --- interpreter selection ---


def test_python_script_uses_python3_on_posix() -> None:
    assert resolve_server_command("server.py", platform="linux") == ("python3", ["server.py"])


def test_python_script_uses_python_on_windows() -> None:
    assert resolve_server_command("server.py", platform="win32") == ("python", ["server.py"])


def test_js_script_uses_node() -> None:
    assert resolve_server_command("build/index.js", platform="darwin") == (
        "node",
        ["build/index.js"],
    )


def test_unsupported_extension_is_rejected() -> None:
    with pytest.raises(BridgeConnectionError, match=".js or .py"):
        resolve_server_command("server.rb")


def test_connect_rejects_unsupported_extension_before_launch(config: BridgeConfig) -> None:
    """No channel is opened for an unsupported script type."""

    with patch("toolbridge.agent.connection.stdio_client") as mock_stdio:
        with pytest.raises(BridgeConnectionError):
            _connect_and_collect("server.rb", config)
    mock_stdio.assert_not_called()


def test_server_environment_includes_model_id(
    config: BridgeConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The server inherits the current environment plus the model identifier."""

    monkeypatch.setenv("TOOLBRIDGE_TEST_VAR", "present")
    params = build_server_parameters("server.py", config)

    assert params.args == ["server.py"]
    assert params.env["ANTHROPIC_MODEL"] == "test-model"
    assert params.env["TOOLBRIDGE_TEST_VAR"] == "present"


# --- catalog ---


def test_input_schema_is_renamed_without_transformation() -> None:
    """``inputSchema`` becomes ``input_schema``; nothing else changes."""

    descriptor = to_tool_descriptor(
        types.Tool(name="web_search", description="Search", inputSchema={"type": "object"})
    )
    param = descriptor.to_api_param()

    assert param == {
        "name": "web_search",
        "description": "Search",
        "input_schema": {"type": "object"},
    }
    assert "inputSchema" not in param
    assert "inputSchema" not in descriptor.model_dump()


def test_catalog_from_wire_format_tool_list() -> None:
    """A tools/list reply in MCP wire JSON (camelCase keys) parses with the installed SDK."""

    result = types.ListToolsResult.model_validate(
        {
            "tools": [
                {
                    "name": "web_search",
                    "description": "Search",
                    "inputSchema": {"type": "object", "required": ["query"]},
                }
            ]
        }
    )

    (descriptor,) = build_catalog(result.tools)

    assert descriptor.to_api_param()["input_schema"] == {"type": "object", "required": ["query"]}


def test_client_version_matches_package() -> None:
    assert CLIENT_VERSION == version("toolbridge")


def test_catalog_keeps_discovery_order() -> None:
    catalog = build_catalog(
        [
            types.Tool(name="b", inputSchema={"type": "object"}),
            types.Tool(name="a", inputSchema={"type": "object"}),
        ]
    )

    assert [tool.name for tool in catalog] == ["b", "a"]


def test_catalog_rejects_duplicate_names() -> None:
    with pytest.raises(BridgeConnectionError, match="duplicate"):
        build_catalog(
            [
                types.Tool(name="a", inputSchema={"type": "object"}),
                types.Tool(name="a", inputSchema={"type": "object"}),
            ]
        )


# --- connect ---


def test_connect_discovers_tools_and_closes_once(config: BridgeConfig) -> None:
    """A successful connection yields the catalog and closes the session on exit."""

    with patch("toolbridge.agent.connection.stdio_client", fake_stdio_client), patch(
        "toolbridge.agent.connection.ClientSession", FakeSession
    ):
        context = _connect_and_collect("server.py", config)

    session = FakeSession.instances[0]
    assert context.channel is session
    assert context.tool_names == ["web_search", "get_time"]
    assert context.tools[0].input_schema == {"type": "object"}
    assert session.initialized
    assert session.close_count == 1
    assert session.kwargs["client_info"].name == "toolbridge"
    assert session.kwargs["client_info"].version == version("toolbridge")


def test_connect_closes_session_when_body_fails(config: BridgeConfig) -> None:
    """The channel is released even when the session using it fails."""

    async def _run() -> None:
        async with connect("server.py", config):
            raise ValueError("session crashed")

    with patch("toolbridge.agent.connection.stdio_client", fake_stdio_client), patch(
        "toolbridge.agent.connection.ClientSession", FakeSession
    ):
        with pytest.raises(ValueError):
            asyncio.run(_run())

    assert FakeSession.instances[0].close_count == 1


def test_launch_failure_is_a_connection_error(config: BridgeConfig) -> None:
    @asynccontextmanager
    async def failing_stdio_client(server_params):
        raise FileNotFoundError("python3 not found")
        yield  # pragma: no cover

    with patch("toolbridge.agent.connection.stdio_client", failing_stdio_client):
        with pytest.raises(BridgeConnectionError, match="python3 not found"):
            _connect_and_collect("server.py", config)


def test_handshake_failure_is_a_connection_error(config: BridgeConfig) -> None:
    class FailingSession(FakeSession):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            self.fail_initialize = True

    with patch("toolbridge.agent.connection.stdio_client", fake_stdio_client), patch(
        "toolbridge.agent.connection.ClientSession", FailingSession
    ):
        with pytest.raises(BridgeConnectionError, match="handshake failed"):
            _connect_and_collect("server.py", config)

    assert FakeSession.instances[0].close_count == 1
