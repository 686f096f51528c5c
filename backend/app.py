import os
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.bootstrap import Runtime, bootstrap
from backend.config import bus_settings, load_config
from backend.logging_setup import setup_logging
from backend.routes import router
from chat_bridge.bus import Subscriptions
from chat_bridge.consumer import ChatEventConsumer

load_dotenv(Path(__file__).parent.parent / ".env")

Bootstrapper = Callable[[dict[str, Any]], Awaitable[Runtime]]


def create_app(
    config: dict[str, Any] | None = None,
    bootstrapper: Bootstrapper = bootstrap,
) -> FastAPI:
    """Build the app. Bootstrap runs in the lifespan, before any delivery is accepted."""
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = config if config is not None else load_config()
        runtime = await bootstrapper(resolved)
        bus = bus_settings(resolved)

        consumer = ChatEventConsumer(runtime.chat_client, runtime.options, runtime.registry)
        subscriptions = Subscriptions()
        subscriptions.subscribe(bus.queue, consumer.consume)

        app.state.runtime = runtime
        app.state.subscriptions = subscriptions
        app.state.ack_deadline = bus.ack_deadline
        try:
            yield
        finally:
            await runtime.aclose()

    app = FastAPI(title="Chat Bridge", lifespan=lifespan)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (reads $CHAT_BRIDGE_CONFIG at startup)
app = create_app()
