"""Retry executors built on tenacity.

Two policies, each in a blocking and an async flavour:

    retry_forever / aretry_forever   retry until success; only failures
                                     matching `retry_on` are retried
    retry_bounded / aretry_bounded   give up after `attempts` tries and
                                     re-raise the last failure

Failures that do not match `retry_on` propagate immediately. The executors do
no logging of their own; callers observe attempts through `before_sleep`
(see attempt_logger) and exhaustion through the re-raised exception. The async
variants stop as soon as the surrounding task is cancelled; the blocking
unbounded loop takes a `stop_event` instead, for callers running it in a
worker thread.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    stop_when_event_set,
)
from tenacity.wait import wait_base, wait_exponential

T = TypeVar("T")

FailureKind = type[BaseException] | tuple[type[BaseException], ...]
BeforeSleep = Callable[[RetryCallState], None]

DEFAULT_WAIT: wait_base = wait_exponential(multiplier=1, min=1, max=30)


def _policy(
    retry_on: FailureKind,
    attempts: int | None,
    wait: wait_base,
    before_sleep: BeforeSleep | None,
) -> dict:
    if attempts is not None and attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")
    return {
        "reraise": True,
        "stop": stop_never if attempts is None else stop_after_attempt(attempts),
        "wait": wait,
        "retry": retry_if_exception_type(retry_on),
        "before_sleep": before_sleep,
    }


def retry_forever(
    fn: Callable[[], T],
    *,
    retry_on: FailureKind,
    wait: wait_base = DEFAULT_WAIT,
    before_sleep: BeforeSleep | None = None,
    stop_event: threading.Event | None = None,
) -> T:
    """Call `fn` until it returns, blocking the calling thread between attempts.

    Setting `stop_event` (from any thread) cuts the current wait short; the
    loop then makes at most one more attempt and re-raises its failure.
    """
    policy = _policy(retry_on, None, wait, before_sleep)
    if stop_event is not None:
        policy["stop"] = stop_when_event_set(stop_event)
        policy["sleep"] = stop_event.wait
    return Retrying(**policy)(fn)


def retry_bounded(
    fn: Callable[[], T],
    *,
    retry_on: FailureKind,
    attempts: int = 3,
    wait: wait_base = DEFAULT_WAIT,
    before_sleep: BeforeSleep | None = None,
) -> T:
    """Call `fn` at most `attempts` times; re-raise the last failure on exhaustion."""
    return Retrying(**_policy(retry_on, attempts, wait, before_sleep))(fn)


async def aretry_forever(
    fn: Callable[[], Awaitable[T]],
    *,
    retry_on: FailureKind,
    wait: wait_base = DEFAULT_WAIT,
    before_sleep: BeforeSleep | None = None,
) -> T:
    return await AsyncRetrying(**_policy(retry_on, None, wait, before_sleep))(fn)


async def aretry_bounded(
    fn: Callable[[], Awaitable[T]],
    *,
    retry_on: FailureKind,
    attempts: int = 3,
    wait: wait_base = DEFAULT_WAIT,
    before_sleep: BeforeSleep | None = None,
) -> T:
    return await AsyncRetrying(**_policy(retry_on, attempts, wait, before_sleep))(fn)


def attempt_logger(
    logger: logging.Logger, what: str, level: int = logging.WARNING
) -> BeforeSleep:
    """Return a `before_sleep` hook logging each failed attempt of `what`."""

    def _log(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.log(
            level,
            "%s failed (attempt %d): %s; retrying in %.1fs",
            what, state.attempt_number, error, delay,
        )

    return _log
