"""Push-delivery endpoint: the bus POSTs each chat event here.

Delivery metadata travels in headers:
  X-Message-Id        bus message id (generated when absent)
  X-Delivery-Attempt  1 for the first delivery, incremented on redelivery
  X-Ack-Deadline      seconds before the bus gives up on this delivery;
                      processing is cancelled once it passes

Any 2xx acknowledges the message; 5xx asks the bus to redeliver.
"""

import uuid

from fastapi import APIRouter, Header, HTTPException, Request

from chat_bridge.bus import ConsumeContext, DeliveryCancelled, Subscriptions
from chat_bridge.llm import ChatBackendError
from chat_bridge.models import ChatEvent

router = APIRouter()


@router.post("/events/{queue}", status_code=202)
async def deliver_event(
    queue: str,
    event: ChatEvent,
    request: Request,
    x_message_id: str | None = Header(None),
    x_delivery_attempt: int = Header(1, ge=1),
    x_ack_deadline: float | None = Header(None, gt=0),
):
    """Hand one chat event to the handler subscribed to `queue`."""
    subscriptions: Subscriptions = request.app.state.subscriptions
    if queue not in subscriptions:
        raise HTTPException(404, f"No subscription for queue {queue!r}")

    context = ConsumeContext(
        message_id=x_message_id or uuid.uuid4().hex,
        queue=queue,
        attempt=x_delivery_attempt,
    )
    deadline = x_ack_deadline or request.app.state.ack_deadline
    timer = context.cancel_after(deadline) if deadline else None
    try:
        outcome = await subscriptions.deliver(queue, event, context)
    except DeliveryCancelled:
        raise HTTPException(504, "Ack deadline passed before the chat backend responded")
    except ChatBackendError as e:
        raise HTTPException(502, str(e))
    finally:
        if timer is not None:
            timer.cancel()

    return {"status": outcome.value, "message_id": context.message_id}
