"""Core domain models.

Every stage of event handling (composition, dispatch, logging) operates on
these types. Pydantic is used for validation and serialisation at every data
boundary; wire payloads may use camelCase keys (``handlingObject``,
``jsonSchema``) as well as the snake_case field names.
"""

from __future__ import annotations

import base64
import json
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SerializationError(ValueError):
    """Raised when a handling object cannot be represented as text."""


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"  # tool results, produced only by the function-invocation loop


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _unwrap_function(cls, data: Any) -> Any:
        # Ollama nests the call as {"function": {"name": ..., "arguments": ...}}
        if isinstance(data, dict) and "function" in data:
            return data["function"]
        return data


class Message(BaseModel):
    """A single entry of the conversation sent to the chat backend."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_name: str | None = None  # set on tool-result messages only


class ToolDescriptor(BaseModel):
    """A tool advertised by the tool server."""

    model_config = ConfigDict(frozen=True, **_WIRE)

    name: str
    description: str = ""
    json_schema: str = "{}"

    def parameters(self) -> dict[str, Any]:
        """Return the schema as a JSON object, or ``{}`` if it is not one."""
        try:
            schema = json.loads(self.json_schema)
        except json.JSONDecodeError:
            return {}
        return schema if isinstance(schema, dict) else {}


# ---------------------------------------------------------------------------
# Handling objects: the closed set of context payloads an event may carry
# ---------------------------------------------------------------------------

class TextPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    def render(self) -> str:
        return self.text


class StructuredPayload(BaseModel):
    """Serialized bytes chosen by the producer; base64-encoded on the wire."""

    model_config = ConfigDict(frozen=True, **_WIRE)

    kind: Literal["structured"] = "structured"
    content_type: str = "application/json"
    data: bytes

    @field_validator("data", mode="before")
    @classmethod
    def _decode_base64(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except ValueError as e:
                raise ValueError("data must be base64-encoded") from e
        return value

    @field_serializer("data")
    def _encode_base64(self, data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    def render(self) -> str:
        try:
            return self.data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(
                f"{self.content_type} payload of {len(self.data)} bytes is not UTF-8 text"
            ) from e


HandlingObject = Annotated[TextPayload | StructuredPayload, Field(discriminator="kind")]

# kind -> field the variant cannot do without
_PAYLOAD_FIELDS = {"text": "text", "structured": "data"}


def _is_tagged_payload(value: dict) -> bool:
    """True for a dict that is already a HandlingObject variant.

    Producer payloads are free to carry their own "kind" key; only a known
    kind together with its data field selects a variant.
    """
    required = _PAYLOAD_FIELDS.get(value.get("kind"))
    return required is not None and required in value


class ChatEvent(BaseModel):
    """One bus delivery: the prompts to send plus an optional context payload."""

    model_config = _WIRE

    prompts: list[str]
    handling_object: HandlingObject | None = None

    @field_validator("handling_object", mode="before")
    @classmethod
    def _coerce_handling_object(cls, value: Any) -> Any:
        # Bare strings become text; any other bare JSON value becomes structured.
        if value is None or isinstance(value, (TextPayload, StructuredPayload)):
            return value
        if isinstance(value, str):
            return {"kind": "text", "text": value}
        if isinstance(value, dict) and _is_tagged_payload(value):
            return value
        try:
            encoded = json.dumps(value, separators=(",", ":")).encode("utf-8")
        except TypeError as e:
            raise ValueError(f"handling object is not JSON-serializable: {e}") from e
        return {"kind": "structured", "data": encoded}


class ChatResponse(BaseModel):
    """Result of a completion call. Unknown backend fields are kept."""

    model_config = ConfigDict(extra="allow")

    model: str = ""
    created_at: str = ""
    message: Message
    done: bool = True
    done_reason: str | None = None
