"""Tests for chat_bridge.tools against the in-process development tool server."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

import backend.tool_server as tool_server
from chat_bridge.tools import ToolServerClient, ToolServerError


@pytest.fixture(autouse=True)
def fresh_catalogue():
    """Give each test its own catalogue copy so recorded incidents don't bleed across tests."""
    tool_server.set_catalogue(dict(tool_server.DEFAULT_CATALOGUE))


async def test_list_tools_returns_descriptors():
    async with create_connected_server_and_client_session(tool_server.mcp) as session:
        registry = await ToolServerClient(session).list_tools()

    names = [t.name for t in registry]
    assert names == ["lookup_error_codes", "record_incident"]
    lookup = registry[0]
    assert lookup.description.startswith("Look up operational error codes")
    schema = json.loads(lookup.json_schema)
    assert "codes" in schema["properties"]
    assert lookup.parameters() == schema


async def test_call_tool_returns_text():
    async with create_connected_server_and_client_session(tool_server.mcp) as session:
        text = await ToolServerClient(session).call_tool("lookup_error_codes", {"codes": ["E1001", "E9999"]})
    assert "E1001" in text
    assert "Upstream connection refused." in text
    assert "E9999" not in text


async def test_call_tool_records_state():
    async with create_connected_server_and_client_session(tool_server.mcp) as session:
        await ToolServerClient(session).call_tool(
            "record_incident", {"code": "E2002", "service": "billing", "message": "lagging"}
        )
    assert tool_server.get_incidents() == [
        {"id": 1, "code": "E2002", "service": "billing", "message": "lagging"}
    ]


async def test_tool_error_result_is_prefixed():
    async with create_connected_server_and_client_session(tool_server.mcp) as session:
        text = await ToolServerClient(session).call_tool(
            "record_incident", {"code": "NOPE", "service": "billing", "message": "x"}
        )
    assert text.startswith("Error: ")
    assert "Unknown error code NOPE" in text
    assert tool_server.get_incidents() == []


async def test_list_tools_failure_wrapped():
    session = MagicMock()
    session.list_tools = AsyncMock(side_effect=RuntimeError("stream closed"))
    with pytest.raises(ToolServerError, match="Listing tools failed"):
        await ToolServerClient(session).list_tools()


async def test_call_tool_failure_wrapped():
    session = MagicMock()
    session.call_tool = AsyncMock(side_effect=RuntimeError("stream closed"))
    with pytest.raises(ToolServerError, match="'lookup_error_codes' failed"):
        await ToolServerClient(session).call_tool("lookup_error_codes", {})


async def test_connect_failure_wrapped():
    failing = MagicMock()
    failing.__aenter__ = AsyncMock(side_effect=OSError("connection refused"))
    failing.__aexit__ = AsyncMock(return_value=False)
    with patch("chat_bridge.tools.sse_client", return_value=failing):
        with pytest.raises(ToolServerError, match="Cannot connect to tool server"):
            await ToolServerClient.connect("http://localhost:1/sse")


async def test_aclose_without_stack_is_noop():
    await ToolServerClient(MagicMock()).aclose()
