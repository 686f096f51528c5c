"""Service configuration (prompt lists, chat backend, tool server, bus).

Configuration is one JSON file, located by $CHAT_BRIDGE_CONFIG (default
./config.json). A missing file is an empty configuration: every section then
falls back to its defaults, except `tool_server`, which bootstrap requires.

Sections (keys may be snake_case or camelCase):

    prompt_options  system_prompts, default_user_prompts, tool_instruction_prompts
    chat_backend    host, port, transport_protocol, communication_protocol,
                    model, tls_enabled, tls_certificate, timeout, max_tool_rounds
    tool_server     endpoint (required), name, connection_timeout,
                    sse_read_timeout, additional_headers, max_attempts
    bus             queue, ack_deadline
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.json")

_SETTINGS = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid; aborts startup."""


class ChatBackendSettings(BaseModel):
    model_config = _SETTINGS

    host: str = "localhost"
    port: int = 11443
    transport_protocol: Literal["tcp"] = "tcp"
    communication_protocol: Literal["http"] = "http"
    model: str = "llama3.1:8b"
    tls_enabled: bool = False
    tls_certificate: str | None = None  # CA bundle path used to verify the backend
    timeout: float = 120.0
    max_tool_rounds: int = Field(5, ge=0)

    def base_url(self) -> str:
        scheme = "https" if self.tls_enabled else "http"
        return f"{scheme}://{self.host}:{self.port}"

    def verify(self) -> bool | str:
        if self.tls_enabled and self.tls_certificate:
            return self.tls_certificate
        return True

    def __str__(self) -> str:
        return self.base_url()


class ToolServerSettings(BaseModel):
    model_config = _SETTINGS

    endpoint: str
    name: str = ""
    connection_timeout: float = 5.0
    sse_read_timeout: float = 300.0
    additional_headers: dict[str, str] = Field(default_factory=dict)
    max_attempts: int = Field(3, ge=1)


class BusSettings(BaseModel):
    model_config = _SETTINGS

    queue: str = "chat-events"
    ack_deadline: float | None = Field(None, gt=0)


def config_path() -> Path:
    return Path(os.getenv("CHAT_BRIDGE_CONFIG", str(DEFAULT_CONFIG_PATH)))


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Read the configuration file; a missing file yields an empty dict."""
    path = path or config_path()
    if not path.is_file():
        return {}
    try:
        config = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(config, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return config


def section(config: dict[str, Any], name: str) -> dict[str, Any] | None:
    """Return a section by snake_case or camelCase name, or None if absent."""
    value = config.get(name)
    if value is None:
        value = config.get(to_camel(name))
    if value is not None and not isinstance(value, dict):
        raise ConfigurationError(f"Configuration section {name!r} must be an object")
    return value


def _parse(model: type[BaseModel], name: str, values: dict[str, Any]) -> Any:
    try:
        return model.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {name} configuration: {e}") from e


def chat_backend_settings(config: dict[str, Any]) -> ChatBackendSettings:
    values = section(config, "chat_backend")
    if values is None:
        logger.warning(
            "No chat_backend configuration provided; falling back to %s", ChatBackendSettings()
        )
        values = {}
    return _parse(ChatBackendSettings, "chat_backend", values)


def tool_server_settings(config: dict[str, Any]) -> ToolServerSettings | None:
    """Parse the tool server section. None when the section is absent."""
    values = section(config, "tool_server")
    if values is None:
        return None
    return _parse(ToolServerSettings, "tool_server", values)


def bus_settings(config: dict[str, Any]) -> BusSettings:
    return _parse(BusSettings, "bus", section(config, "bus") or {})
