from unittest.mock import AsyncMock, MagicMock

import pytest

from chat_bridge.models import ChatResponse, Message, Role


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point the service at an empty config location for every test."""
    monkeypatch.setenv("CHAT_BRIDGE_CONFIG", str(tmp_path / "missing-config.json"))


@pytest.fixture
def chat_response() -> ChatResponse:
    return ChatResponse(
        model="llama3.1:8b",
        created_at="2025-01-01T00:00:00Z",
        message=Message(role=Role.ASSISTANT, content="[ERROR] upstream refused connection"),
    )


@pytest.fixture
def chat_client(chat_response: ChatResponse) -> MagicMock:
    """A ChatClient whose get_response records calls and returns chat_response."""
    client = MagicMock()
    client.get_response = AsyncMock(return_value=chat_response)
    return client
