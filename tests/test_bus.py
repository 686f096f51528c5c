"""Tests for chat_bridge.bus: subscriptions and delivery context."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chat_bridge.bus import ConsumeContext, Delivery, Subscriptions
from chat_bridge.models import ChatEvent

EVENT = ChatEvent(prompts=["p"])


class TestConsumeContext:
    def test_defaults(self) -> None:
        context = ConsumeContext()
        assert len(context.message_id) == 32
        assert context.attempt == 1
        assert context.received_at.tzinfo is not None
        assert not context.cancelled.is_set()

    def test_contexts_do_not_share_cancellation(self) -> None:
        first, second = ConsumeContext(), ConsumeContext()
        first.cancel()
        assert first.cancelled.is_set()
        assert not second.cancelled.is_set()

    async def test_cancel_after_deadline(self) -> None:
        context = ConsumeContext()
        context.cancel_after(0.01)
        await asyncio.wait_for(context.cancelled.wait(), timeout=1)
        assert context.cancelled.is_set()

    async def test_cancel_after_can_be_disarmed(self) -> None:
        context = ConsumeContext()
        timer = context.cancel_after(0.01)
        timer.cancel()
        await asyncio.sleep(0.05)
        assert not context.cancelled.is_set()


class TestSubscriptions:
    async def test_deliver_calls_handler_with_context(self) -> None:
        handler = AsyncMock(return_value=Delivery.HANDLED)
        subscriptions = Subscriptions()
        subscriptions.subscribe("chat-events", handler)
        context = ConsumeContext(queue="chat-events")

        outcome = await subscriptions.deliver("chat-events", EVENT, context)

        assert outcome is Delivery.HANDLED
        handler.assert_awaited_once_with(EVENT, context)

    async def test_unknown_queue(self) -> None:
        subscriptions = Subscriptions()
        assert "nope" not in subscriptions
        with pytest.raises(KeyError):
            await subscriptions.deliver("nope", EVENT, ConsumeContext())

    def test_duplicate_subscription_rejected(self) -> None:
        subscriptions = Subscriptions()
        subscriptions.subscribe("q", AsyncMock())
        with pytest.raises(ValueError, match="already has a handler"):
            subscriptions.subscribe("q", AsyncMock())

    def test_queues_listed_in_subscription_order(self) -> None:
        subscriptions = Subscriptions()
        subscriptions.subscribe("b", AsyncMock())
        subscriptions.subscribe("a", AsyncMock())
        assert subscriptions.queues() == ["b", "a"]
        assert "a" in subscriptions
