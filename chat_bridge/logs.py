"""Log helpers for records about the chat backend.

Records emitted through these helpers carry `log_type="AiLog"` (and, for
responses, `log_root_generator="Ollama"`) as extra attributes, so a handler or
formatter can route AI traffic separately from service logs.
"""

import logging

AI_LOG_TYPE = "AiLog"
AI_LOG_ROOT_GENERATOR = "Ollama"


def log_ai(logger: logging.Logger, msg: str, *args: object) -> None:
    """Log an AI response at INFO."""
    logger.info(
        msg, *args,
        extra={"log_type": AI_LOG_TYPE, "log_root_generator": AI_LOG_ROOT_GENERATOR},
    )


def warn_ai(logger: logging.Logger, msg: str, *args: object) -> None:
    """Log an AI-related warning."""
    logger.warning(msg, *args, extra={"log_type": AI_LOG_TYPE})
