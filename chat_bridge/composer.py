"""Conversation composition.

compose_messages() turns (prompt options, tool registry, event) into the
ordered message list sent to the chat backend:

  1. system prompts                       (system)
  2. default user prompts                 (user)
  3. only when the registry is non-empty:
       tool instruction prompts           (system)
       one summary per tool descriptor    (system)
  4. the event's prompts                  (user)
  5. the rendered handling object, if any (user)

The order is significant and identical inputs always give an identical list.
The only side effect is a warning when the handling object cannot be rendered
as text; that payload is then left out and composition carries on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import pybars

from chat_bridge.logs import warn_ai
from chat_bridge.models import ChatEvent, Message, Role, SerializationError, ToolDescriptor
from chat_bridge.options import PromptOptions

logger = logging.getLogger(__name__)

TOOL_SUMMARY_TEMPLATE = (
    "Tool: {{{name}}}, Description: {{{description}}}, JsonSchema: {{{json_schema}}}"
)

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_tool_summary(
    tool: ToolDescriptor, template: str = TOOL_SUMMARY_TEMPLATE
) -> str:
    """Render the one-line summary a model reads for each available tool."""
    try:
        compiled = _cache.get(template)
        if compiled is None:
            compiled = _compiler.compile(template)
            _cache[template] = compiled
        return compiled(tool.model_dump())
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def compose_messages(
    options: PromptOptions,
    registry: Sequence[ToolDescriptor],
    event: ChatEvent,
) -> list[Message]:
    messages = [Message(role=Role.SYSTEM, content=p) for p in options.system_prompts]
    messages.extend(Message(role=Role.USER, content=p) for p in options.default_user_prompts)

    if registry:
        messages.extend(
            Message(role=Role.SYSTEM, content=p) for p in options.tool_instruction_prompts
        )
        messages.extend(
            Message(role=Role.SYSTEM, content=render_tool_summary(tool)) for tool in registry
        )

    messages.extend(Message(role=Role.USER, content=p) for p in event.prompts)

    if event.handling_object is not None:
        try:
            context_text = event.handling_object.render()
        except SerializationError as e:
            warn_ai(logger, "HandlingObject cannot be processed as string %r", event.handling_object)
            warn_ai(logger, "Captured an error: %s", e)
        else:
            messages.append(Message(role=Role.USER, content=context_text))

    return messages
