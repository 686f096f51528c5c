"""Startup wiring: chat backend client, tool server client, prompt options.

Runs once, before any event is delivered:

  1. Configuration: prompt options, chat backend settings and tool server
     settings are read first. Absent tool server settings are a deployment
     defect: logged critical, ConfigurationError raised, and nothing is
     contacted.
  2. Chat backend: probe under an unbounded retry filtered to connectivity
     failures (refused connections, timeouts, 502/503/504). Startup waits for
     as long as the backend is unreachable; no event can be served without
     it. Cancelling bootstrap stops the probing.
  3. Tool server connection: bounded retry filtered to tool server failures.
     On exhaustion the service carries on with an empty tool registry.
  4. Tool listing: a failure here also leaves the registry empty, but keeps
     the connected tool client.

Bootstrap therefore fails only with ConfigurationError; a chat backend that
answers but rejects the probe (e.g. HTTP 401) is reported as one.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any

from tenacity.wait import wait_base

from backend.config import (
    ChatBackendSettings,
    ConfigurationError,
    ToolServerSettings,
    chat_backend_settings,
    section,
    tool_server_settings,
)
from chat_bridge.llm import ChatBackendError, ChatBackendUnavailable, ChatClient, OllamaChatClient
from chat_bridge.models import ToolDescriptor
from chat_bridge.options import PromptOptions, load_prompt_options
from chat_bridge.retry import DEFAULT_WAIT, aretry_bounded, attempt_logger, retry_forever
from chat_bridge.tools import ToolServerClient, ToolServerError

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything event handling needs; immutable once bootstrap returns."""

    chat_client: ChatClient
    options: PromptOptions
    registry: tuple[ToolDescriptor, ...] = ()
    tool_client: ToolServerClient | None = None

    async def aclose(self) -> None:
        if self.tool_client is not None:
            await self.tool_client.aclose()


def bootstrap_chat_client(
    settings: ChatBackendSettings,
    *,
    wait: wait_base = DEFAULT_WAIT,
    stop: threading.Event | None = None,
) -> OllamaChatClient:
    """Build the chat client, blocking until the backend answers or `stop` is set."""
    client = OllamaChatClient(
        settings.base_url(),
        settings.model,
        timeout=settings.timeout,
        verify=settings.verify(),
        max_tool_rounds=settings.max_tool_rounds,
    )
    logger.info("Connecting to chat backend at %s (model %s)", settings, settings.model)
    version = retry_forever(
        client.probe,
        retry_on=ChatBackendUnavailable,
        wait=wait,
        before_sleep=attempt_logger(logger, f"Chat backend at {settings}"),
        stop_event=stop,
    )
    logger.info("Chat backend ready (version %s)", version or "unknown")
    return client


async def bootstrap_tool_registry(
    settings: ToolServerSettings, *, wait: wait_base = DEFAULT_WAIT
) -> tuple[ToolServerClient | None, tuple[ToolDescriptor, ...]]:
    """Connect to the tool server and list its tools, degrading to no tools."""

    async def _connect() -> ToolServerClient:
        return await ToolServerClient.connect(
            settings.endpoint,
            headers=settings.additional_headers,
            timeout=settings.connection_timeout,
            sse_read_timeout=settings.sse_read_timeout,
            name=settings.name,
        )

    try:
        tool_client = await aretry_bounded(
            _connect,
            retry_on=ToolServerError,
            attempts=settings.max_attempts,
            wait=wait,
            before_sleep=attempt_logger(logger, f"Tool server at {settings.endpoint}"),
        )
    except ToolServerError as e:
        logger.error("Failed to connect to the MCP SSE server. (%s)", e)
        return None, ()

    try:
        registry = await tool_client.list_tools()
    except ToolServerError as e:
        logger.error("Failure in loading MCP tools list. %s", e)
        return tool_client, ()

    logger.info(
        "Loaded %d tool(s) from %s: %s",
        len(registry), settings.endpoint, ", ".join(t.name for t in registry),
    )
    return tool_client, registry


async def bootstrap(config: dict[str, Any], *, wait: wait_base = DEFAULT_WAIT) -> Runtime:
    try:
        options = load_prompt_options(section(config, "prompt_options"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid prompt_options configuration: {e}") from e
    chat_settings = chat_backend_settings(config)

    tool_settings = tool_server_settings(config)
    if tool_settings is None:
        logger.critical(
            "AI services need a running MCP server! Options for the MCP server transport not provided."
        )
        raise ConfigurationError("tool_server configuration is missing")

    # retry_forever sleeps between attempts; keep it off the event loop thread.
    stop = threading.Event()
    try:
        chat_client = await asyncio.to_thread(
            bootstrap_chat_client, chat_settings, wait=wait, stop=stop
        )
    except ChatBackendError as e:
        raise ConfigurationError(f"Chat backend at {chat_settings} rejected the probe: {e}") from e
    finally:
        # the worker thread outlives a cancelled await unless told to stop
        stop.set()

    tool_client, registry = await bootstrap_tool_registry(tool_settings, wait=wait)
    if tool_client is not None:
        chat_client.attach_tool_invoker(tool_client.call_tool)

    return Runtime(
        chat_client=chat_client,
        options=options,
        registry=registry,
        tool_client=tool_client,
    )
