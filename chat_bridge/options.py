"""Canned prompt lists injected into every conversation.

Three independent lists, each overridable from configuration:

    system_prompts            System messages opening every conversation
    default_user_prompts      User messages sent before the event's prompts
    tool_instruction_prompts  System messages sent only when tools are available

A list that is absent (or null) in configuration keeps its built-in default;
overriding one list leaves the other two untouched. An explicit empty list is
an override, not an absence.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_SYSTEM_PROMPTS: tuple[str, ...] = (
    "Your name is SKB.ChatAgent.",
    "Your task is to perform operations based on the system states.",
    "You will be provided with multiple Error texts occuring in the operational architecture.",
    "You supposed to generate strings that look like log statements",
)

DEFAULT_USER_PROMPTS: tuple[str, ...] = ()

DEFAULT_TOOL_INSTRUCTION_PROMPTS: tuple[str, ...] = (
    "Your task is to invoke the MCP tool, only if you are provided any MCP tools by the MCP server.",
    "You are allowed to use multiple MCP tools.",
)


class PromptOptions(BaseModel):
    """Immutable snapshot shared by every event handler."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    system_prompts: tuple[str, ...] = DEFAULT_SYSTEM_PROMPTS
    default_user_prompts: tuple[str, ...] = DEFAULT_USER_PROMPTS
    tool_instruction_prompts: tuple[str, ...] = DEFAULT_TOOL_INSTRUCTION_PROMPTS


def load_prompt_options(section: Mapping[str, Any] | None) -> PromptOptions:
    """Build the snapshot from a configuration section.

    Keys may be snake_case or camelCase. Raises ValueError (a pydantic
    ValidationError) when a provided value is not a list of strings.
    """
    section = section or {}
    overrides: dict[str, Any] = {}
    for name in PromptOptions.model_fields:
        value = section.get(name)
        if value is None:
            value = section.get(to_camel(name))
        if value is not None:
            overrides[name] = value
    return PromptOptions(**overrides)
