"""Tests for the HTTP surface: push delivery, health and tool endpoints."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from backend.app import create_app
from backend.bootstrap import Runtime
from chat_bridge.llm import ChatBackendError
from chat_bridge.models import ToolDescriptor
from chat_bridge.options import PromptOptions

OPTIONS = PromptOptions(system_prompts=("S1",), default_user_prompts=(), tool_instruction_prompts=("T1",))
LOOKUP = ToolDescriptor(name="lookup_error_codes", description="Look up codes", json_schema='{"type":"object"}')
CONFIG = {"bus": {"queue": "chat-events"}}


def _client(chat_client, registry=(), config=CONFIG) -> TestClient:
    async def fake_bootstrap(config):
        return Runtime(chat_client=chat_client, options=OPTIONS, registry=registry)

    return TestClient(create_app(config, bootstrapper=fake_bootstrap))


@pytest.fixture
def client(chat_client):
    with _client(chat_client, (LOOKUP,)) as c:
        yield c


# ── Health and tools ─────────────────────────────────────


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_tools_lists_registry(client):
    resp = client.get("/api/tools")
    assert resp.status_code == 200
    assert resp.json() == [
        {"name": "lookup_error_codes", "description": "Look up codes", "jsonSchema": '{"type":"object"}'}
    ]


def test_tools_empty_when_registry_empty(chat_client):
    with _client(chat_client) as c:
        assert c.get("/api/tools").json() == []


# ── Event delivery ───────────────────────────────────────


def test_event_handled(client, chat_client):
    resp = client.post(
        "/api/events/chat-events",
        json={"prompts": ["Summarize"], "handlingObject": "E1001 at 12:00"},
        headers={"X-Message-Id": "msg-1", "X-Delivery-Attempt": "2"},
    )
    assert resp.status_code == 202
    assert resp.json() == {"status": "handled", "message_id": "msg-1"}

    messages = chat_client.get_response.call_args[0][0]
    assert [m.content for m in messages] == [
        "S1",
        "T1",
        "Tool: lookup_error_codes, Description: Look up codes, JsonSchema: {\"type\":\"object\"}",
        "Summarize",
        "E1001 at 12:00",
    ]


def test_message_id_generated_when_absent(client):
    resp = client.post("/api/events/chat-events", json={"prompts": ["p"]})
    assert resp.status_code == 202
    assert len(resp.json()["message_id"]) == 32


def test_structured_handling_object(client, chat_client):
    resp = client.post(
        "/api/events/chat-events",
        json={"prompts": ["p"], "handlingObject": {"service": "billing", "code": "E2002"}},
    )
    assert resp.status_code == 202
    messages = chat_client.get_response.call_args[0][0]
    assert messages[-1].content == '{"service":"billing","code":"E2002"}'


def test_handling_object_with_own_kind_key_is_handled(client, chat_client):
    resp = client.post(
        "/api/events/chat-events",
        json={"prompts": ["p"], "handlingObject": {"kind": "incident", "code": "E42"}},
    )
    assert resp.status_code == 202
    assert resp.json()["status"] == "handled"
    chat_client.get_response.assert_awaited_once()
    messages = chat_client.get_response.call_args[0][0]
    assert messages[-1].content == '{"kind":"incident","code":"E42"}'


def test_empty_prompts_skipped(client, chat_client):
    resp = client.post("/api/events/chat-events", json={"prompts": []})
    assert resp.status_code == 202
    assert resp.json()["status"] == "skipped"
    chat_client.get_response.assert_not_called()


def test_unknown_queue(client):
    resp = client.post("/api/events/other-queue", json={"prompts": ["p"]})
    assert resp.status_code == 404


def test_invalid_body(client, chat_client):
    resp = client.post("/api/events/chat-events", json={"prompts": "not a list"})
    assert resp.status_code == 422
    chat_client.get_response.assert_not_called()


def test_invalid_delivery_attempt(client):
    resp = client.post(
        "/api/events/chat-events", json={"prompts": ["p"]}, headers={"X-Delivery-Attempt": "0"}
    )
    assert resp.status_code == 422


def test_backend_failure_asks_for_redelivery(client, chat_client):
    chat_client.get_response.side_effect = ChatBackendError("Chat backend returned HTTP 500")
    resp = client.post("/api/events/chat-events", json={"prompts": ["p"]})
    assert resp.status_code == 502
    assert "HTTP 500" in resp.json()["detail"]


def test_ack_deadline_cancels_delivery(chat_response):
    class SlowClient:
        async def get_response(self, messages, tools=()):
            await asyncio.sleep(30)
            return chat_response

    with _client(SlowClient()) as c:
        resp = c.post(
            "/api/events/chat-events", json={"prompts": ["p"]}, headers={"X-Ack-Deadline": "0.05"}
        )
    assert resp.status_code == 504


def test_configured_ack_deadline_applies(chat_response):
    class SlowClient:
        async def get_response(self, messages, tools=()):
            await asyncio.sleep(30)
            return chat_response

    config = {"bus": {"queue": "chat-events", "ackDeadline": 0.05}}
    with _client(SlowClient(), config=config) as c:
        resp = c.post("/api/events/chat-events", json={"prompts": ["p"]})
    assert resp.status_code == 504


def test_custom_queue_name(chat_client):
    with _client(chat_client, config={"bus": {"queue": "ops.chat"}}) as c:
        assert c.post("/api/events/ops.chat", json={"prompts": ["p"]}).status_code == 202
        assert c.post("/api/events/chat-events", json={"prompts": ["p"]}).status_code == 404
