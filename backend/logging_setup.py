import logging


def setup_logging(level: str = "INFO") -> logging.Logger:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # httpx logs every request at INFO; the chat client logs its own calls.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger("chat_bridge")
