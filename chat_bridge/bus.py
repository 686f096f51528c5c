"""Subscription abstraction between the host runtime and event handlers.

A handler is a plain coroutine function:

    async def handle(event: ChatEvent, context: ConsumeContext) -> Delivery: ...

registered against a queue name. The host runtime (the HTTP push endpoint in
`backend.routes`) builds one ConsumeContext per delivery, carrying delivery
metadata and a cancellation signal scoped to that delivery, and hands both to
the handler. Acknowledgement, redelivery and dead-lettering stay with the bus.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum

from chat_bridge.models import ChatEvent

logger = logging.getLogger(__name__)


class Delivery(StrEnum):
    HANDLED = "handled"
    SKIPPED = "skipped"  # nothing to do; still acknowledged


class DeliveryCancelled(RuntimeError):
    """Raised by a handler when its delivery was cancelled mid-flight."""


@dataclass
class ConsumeContext:
    """Per-delivery metadata and cancellation signal."""

    message_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    queue: str = ""
    attempt: int = 1
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)

    def cancel(self) -> None:
        self.cancelled.set()

    def cancel_after(self, seconds: float) -> asyncio.TimerHandle:
        """Cancel this delivery once `seconds` have passed. Needs a running loop."""
        return asyncio.get_running_loop().call_later(seconds, self.cancelled.set)


Handler = Callable[[ChatEvent, ConsumeContext], Awaitable[Delivery]]


class Subscriptions:
    """Queue name → handler registry, filled once before deliveries start."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def subscribe(self, queue: str, handler: Handler) -> None:
        if queue in self._handlers:
            raise ValueError(f"Queue {queue!r} already has a handler")
        self._handlers[queue] = handler
        logger.info("Subscribed handler to queue %s", queue)

    def __contains__(self, queue: object) -> bool:
        return queue in self._handlers

    def queues(self) -> list[str]:
        return list(self._handlers)

    async def deliver(self, queue: str, event: ChatEvent, context: ConsumeContext) -> Delivery:
        """Run the handler for `queue`. Raises KeyError for an unknown queue."""
        handler = self._handlers[queue]
        logger.debug(
            "delivering message_id=%s queue=%s attempt=%d", context.message_id, queue, context.attempt
        )
        return await handler(event, context)
