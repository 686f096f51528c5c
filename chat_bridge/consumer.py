"""Chat event consumer: handles one bus delivery end-to-end.

Flow per event:
  1. Reject an event without prompts (warning, no backend call).
  2. Compose the conversation (chat_bridge.composer).
  3. Send one completion request, advertising the same tools used during
     composition. The request is abandoned if the delivery is cancelled.
  4. Log the response with a timestamp.

The consumer keeps only read-only references established at startup, so one
instance can serve any number of concurrent deliveries. The completion call is
not retried here; failures propagate to the bus, which owns redelivery.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime

from chat_bridge.bus import ConsumeContext, Delivery, DeliveryCancelled
from chat_bridge.composer import compose_messages
from chat_bridge.llm import ChatClient
from chat_bridge.logs import log_ai, warn_ai
from chat_bridge.models import ChatEvent, ChatResponse, Message, ToolDescriptor
from chat_bridge.options import PromptOptions

logger = logging.getLogger(__name__)


class ChatEventConsumer:
    def __init__(
        self,
        chat_client: ChatClient,
        options: PromptOptions,
        registry: Sequence[ToolDescriptor] = (),
    ) -> None:
        self._chat_client = chat_client
        self._options = options
        self._registry = tuple(registry)

    async def consume(self, event: ChatEvent, context: ConsumeContext) -> Delivery:
        if not event.prompts:
            warn_ai(logger, "No prompts provided! Please provide at least one prompt.")
            return Delivery.SKIPPED

        messages = compose_messages(self._options, self._registry, event)
        response = await self._complete(messages, context)

        log_ai(
            logger,
            "%s Chat response: %s",
            datetime.now().isoformat(timespec="seconds"),
            response.model_dump_json(),
        )
        return Delivery.HANDLED

    async def _complete(self, messages: list[Message], context: ConsumeContext) -> ChatResponse:
        call = asyncio.ensure_future(
            self._chat_client.get_response(messages, tools=self._registry)
        )
        cancelled = asyncio.ensure_future(context.cancelled.wait())
        try:
            await asyncio.wait({call, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            cancelled.cancel()
            raise
        cancelled.cancel()
        if not call.done():
            call.cancel()
            raise DeliveryCancelled(f"Delivery {context.message_id} was cancelled")
        return call.result()
