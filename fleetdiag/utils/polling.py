"""Bounded backoff polling with an injectable clock.

Used by the artifact collector to wait for asynchronous artifact generation.
Tests pass a fake clock so no real time elapses.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Time source used by poll loops."""

    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Real monotonic clock backed by asyncio.sleep."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass
class PollResult:
    """Outcome of a poll loop."""

    satisfied: bool
    attempts: int
    elapsed: float
    cancelled: bool = False


async def poll_until(
    predicate: Callable[[], Awaitable[bool]],
    interval: float,
    ceiling: float,
    clock: Clock | None = None,
    cancel_event: asyncio.Event | None = None,
    backoff: float = 1.0,
    max_interval: float | None = None,
) -> PollResult:
    """Evaluate ``predicate`` until it holds or ``ceiling`` seconds elapse.

    The predicate is always evaluated at least once. Between attempts the
    loop sleeps ``interval`` seconds, multiplied by ``backoff`` after each
    attempt and capped at ``max_interval`` and at the time remaining.

    Args:
        predicate: Async callable returning True when the wait is over
        interval: Initial delay between attempts in seconds (must be > 0)
        ceiling: Maximum total wait in seconds
        clock: Time source (defaults to the system clock)
        cancel_event: Stops the loop early when set
        backoff: Multiplier applied to the delay after every attempt
        max_interval: Upper bound for the delay

    Returns:
        PollResult describing whether the predicate was satisfied

    Raises:
        ValueError: If interval is not positive
    """
    if interval <= 0:
        raise ValueError(f"interval must be > 0, got {interval}")

    clock = clock or SystemClock()
    start = clock.monotonic()
    delay = interval
    attempts = 0

    while True:
        elapsed = clock.monotonic() - start
        if cancel_event is not None and cancel_event.is_set():
            return PollResult(False, attempts, elapsed, cancelled=True)

        attempts += 1
        if await predicate():
            return PollResult(True, attempts, clock.monotonic() - start)

        elapsed = clock.monotonic() - start
        remaining = ceiling - elapsed
        if remaining <= 0:
            logger.debug("Poll ceiling reached after %d attempt(s) (%.1fs)", attempts, elapsed)
            return PollResult(False, attempts, elapsed)

        await clock.sleep(min(delay, remaining))
        delay *= backoff
        if max_interval is not None:
            delay = min(delay, max_interval)
