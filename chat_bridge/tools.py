"""MCP tool server client.

Wraps an initialised `mcp.ClientSession` opened over the SSE transport:

    client = await ToolServerClient.connect("http://localhost:8765/sse")
    registry = await client.list_tools()
    text = await client.call_tool("lookup_error_codes", {"codes": ["E42"]})
    await client.aclose()

Every transport or protocol failure surfaces as ToolServerError so callers can
retry or degrade on a single exception type.
"""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from typing import Any

from mcp import ClientSession, types
from mcp.client.sse import sse_client

from chat_bridge.models import ToolDescriptor

logger = logging.getLogger(__name__)


class ToolServerError(RuntimeError):
    """Raised when the tool server cannot be reached or a request to it fails."""


class ToolServerClient:
    """Tool discovery and invocation against one MCP server session.

    Args:
        session: An initialised MCP client session.
        stack:   Exit stack owning the session and its transport, closed by
                 aclose(). None when the caller owns the session.
        name:    Display name used in logs.
    """

    def __init__(
        self,
        session: ClientSession,
        stack: AsyncExitStack | None = None,
        name: str = "",
    ) -> None:
        self._session = session
        self._stack = stack
        self.name = name

    @classmethod
    async def connect(
        cls,
        endpoint: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 5.0,
        sse_read_timeout: float = 300.0,
        name: str = "",
    ) -> ToolServerClient:
        """Open the SSE transport and run the MCP handshake."""
        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(
                sse_client(
                    endpoint,
                    headers=headers or None,
                    timeout=timeout,
                    sse_read_timeout=sse_read_timeout,
                )
            )
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except Exception as e:
            await stack.aclose()
            raise ToolServerError(f"Cannot connect to tool server at {endpoint}: {e}") from e
        logger.info("Connected to tool server %s at %s", name or "(unnamed)", endpoint)
        return cls(session, stack, name)

    async def list_tools(self) -> tuple[ToolDescriptor, ...]:
        try:
            result = await self._session.list_tools()
        except Exception as e:
            raise ToolServerError(f"Listing tools failed: {e}") from e
        return tuple(
            ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                json_schema=json.dumps(tool.inputSchema, separators=(",", ":")),
            )
            for tool in result.tools
        )

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Invoke a tool and return its text content.

        A tool that reports an error still returns its text, prefixed with
        "Error: ", so the model can read what went wrong.
        """
        logger.debug("tool call name=%s args=%r", name, arguments)
        try:
            result = await self._session.call_tool(name, arguments)
        except Exception as e:
            raise ToolServerError(f"Tool {name!r} failed: {e}") from e
        text = "\n".join(
            block.text for block in result.content if isinstance(block, types.TextContent)
        )
        if result.isError:
            return f"Error: {text}"
        return text

    async def aclose(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None
