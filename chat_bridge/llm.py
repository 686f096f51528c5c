"""LLM client: HTTP connection to an Ollama chat backend.

Event handling depends only on the ChatClient protocol:

    async def get_response(self, messages, tools=()) -> ChatResponse: ...

`tools` is the list of tool descriptors advertised to the model for this
request; an empty list means the model is offered no tools.

OllamaChatClient is the production implementation. It talks to
`POST /api/chat` (non-streaming) and can run the model's tool calls itself
when a tool invoker is attached: the assistant's tool-call message and one
`tool` result per call are appended to the conversation and the request is
repeated, at most `max_tool_rounds` times.

Failures:
    ChatBackendUnavailable  the backend cannot be reached (retryable)
    ChatBackendError        timeouts, HTTP errors, malformed responses
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

import httpx

from chat_bridge.models import ChatResponse, Message, Role, ToolCall, ToolDescriptor
from chat_bridge.tools import ToolServerError

logger = logging.getLogger(__name__)

ToolInvoker = Callable[[str, dict[str, Any]], Awaitable[str]]

# Bad gateway, service unavailable, gateway timeout: a backend still starting
# or a proxy in front of it.
UNAVAILABLE_STATUSES = frozenset({502, 503, 504})


# ---------------------------------------------------------------------------
# Protocol: every chat client implementation must match this signature
# ---------------------------------------------------------------------------

class ChatClient(Protocol):
    async def get_response(
        self, messages: Sequence[Message], tools: Sequence[ToolDescriptor] = ()
    ) -> ChatResponse: ...


# ---------------------------------------------------------------------------
# OllamaChatClient
# ---------------------------------------------------------------------------

class OllamaChatClient:
    """Async HTTP client for the Ollama chat API.

    Args:
        base_url:        e.g. "http://localhost:11434".
        model:           Model name, e.g. "llama3.1:8b".
        timeout:         HTTP timeout in seconds. Defaults to 120.
        verify:          TLS verification: True, False, or a CA bundle path.
        max_tool_rounds: Upper bound on tool-call round trips per request.
        tool_invoker:    Coroutine function running a tool by name; without
                         one, tool calls are returned to the caller unexecuted.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        timeout: float = 120.0,
        verify: bool | str = True,
        max_tool_rounds: int = 5,
        tool_invoker: ToolInvoker | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout
        self._verify = verify
        self._max_tool_rounds = max_tool_rounds
        self._tool_invoker = tool_invoker

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    def attach_tool_invoker(self, invoker: ToolInvoker) -> None:
        self._tool_invoker = invoker

    def probe(self) -> str:
        """Check that the backend answers. Returns the reported version.

        Blocking; meant to run once at startup. A gateway or "service
        unavailable" status means the backend is not up yet and is reported
        as ChatBackendUnavailable, like a refused connection.
        """
        url = f"{self._base_url}/api/version"
        try:
            resp = httpx.get(url, timeout=self._timeout, verify=self._verify)
            resp.raise_for_status()
        except httpx.TransportError as e:
            raise ChatBackendUnavailable(
                f"Cannot connect to chat backend at {self._base_url}"
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in UNAVAILABLE_STATUSES:
                raise ChatBackendUnavailable(
                    f"Chat backend at {self._base_url} not ready (HTTP {status})"
                ) from e
            raise ChatBackendError(f"Chat backend returned HTTP {status}") from e
        try:
            return str(resp.json().get("version", ""))
        except (ValueError, AttributeError):
            return ""

    async def get_response(
        self, messages: Sequence[Message], tools: Sequence[ToolDescriptor] = ()
    ) -> ChatResponse:
        conversation = list(messages)
        advertised = {tool.name for tool in tools}
        rounds = 0
        while True:
            response = await self._chat(conversation, tools)
            calls = response.message.tool_calls
            if not calls or self._tool_invoker is None:
                return response
            if rounds >= self._max_tool_rounds:
                logger.warning(
                    "Tool invocation stopped after %d round(s); returning last response",
                    rounds,
                )
                return response
            rounds += 1
            conversation.append(response.message)
            for call in calls:
                result = await self._invoke(call, advertised)
                conversation.append(Message(role=Role.TOOL, content=result, tool_name=call.name))

    async def _invoke(self, call: ToolCall, advertised: set[str]) -> str:
        if call.name not in advertised:
            logger.warning("Model requested unadvertised tool %r", call.name)
            return f"Error: tool {call.name!r} is not available"
        try:
            return await self._tool_invoker(call.name, call.arguments)
        except ToolServerError as e:
            logger.warning("Tool %r failed: %s", call.name, e)
            return f"Error: {e}"

    async def _chat(
        self, conversation: Sequence[Message], tools: Sequence[ToolDescriptor]
    ) -> ChatResponse:
        url = f"{self._base_url}/api/chat"
        body = {
            "model": self._model,
            "messages": [_message_payload(m) for m in conversation],
            "tools": [_tool_payload(t) for t in tools],
            "stream": False,
        }
        logger.debug(
            "chat call url=%s messages=%d tools=%d", url, len(conversation), len(tools)
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout, verify=self._verify) as client:
                resp = await client.post(url, json=body)
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise ChatBackendError(f"Chat backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise ChatBackendUnavailable(
                f"Cannot connect to chat backend at {self._base_url}"
            ) from e
        except httpx.HTTPStatusError as e:
            raise ChatBackendError(
                f"Chat backend returned HTTP {e.response.status_code}"
            ) from e

        try:
            response = ChatResponse.model_validate(resp.json())
        except ValueError as e:
            raise ChatBackendError("Unexpected response format from chat backend") from e
        logger.debug("chat response model=%s done=%s", response.model, response.done)
        return response


def _message_payload(message: Message) -> dict[str, Any]:
    payload: dict[str, Any] = {"role": message.role.value, "content": message.content}
    if message.tool_calls:
        payload["tool_calls"] = [
            {"function": {"name": c.name, "arguments": c.arguments}} for c in message.tool_calls
        ]
    if message.tool_name:
        payload["tool_name"] = message.tool_name
    return payload


def _tool_payload(tool: ToolDescriptor) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters(),
        },
    }


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ChatBackendError(RuntimeError):
    """Raised when the chat backend fails or returns something unusable."""


class ChatBackendUnavailable(ChatBackendError):
    """Raised when the chat backend cannot be reached at all."""
