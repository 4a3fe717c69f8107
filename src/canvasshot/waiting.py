"""Bounded polling and the node readiness waiter.

Node content (images, embedded notes) mounts asynchronously, and the
canvas engine exposes no completion callback, so readiness is sampled
on a fixed interval until it holds or a ceiling elapses.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from canvasshot.exceptions import LoadTimeoutError

if TYPE_CHECKING:
    from canvasshot.canvas import CanvasNode

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_LOADING_TIME = 10.0
POLL_INTERVAL = 0.01

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[object]]


@dataclass(frozen=True)
class PollResult(Generic[T]):
    """Outcome of ``poll_until``.

    Attributes:
        satisfied: Whether the condition held before the timeout
        value: The last sampled value
        attempts: Number of samples taken (1 means no sleeping happened)
        elapsed: Seconds since the start reference when polling stopped
    """

    satisfied: bool
    value: T
    attempts: int
    elapsed: float


async def poll_until(
    sample: Callable[[], T],
    until: Callable[[T], bool],
    *,
    interval: float = POLL_INTERVAL,
    timeout: float = MAX_LOADING_TIME,
    started_at: float | None = None,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
    on_retry: Callable[[T, float], object] | None = None,
) -> PollResult[T]:
    """Sample until ``until(value)`` holds or *timeout* seconds have passed.

    The first sample is taken immediately. Elapsed time is measured from
    *started_at* (a ``clock()`` reading) when given, else from the call.
    Never raises on timeout; callers decide what a miss means.
    """
    start = clock() if started_at is None else started_at
    value = sample()
    attempts = 1
    while not until(value) and clock() - start < timeout:
        await sleep(interval)
        value = sample()
        attempts += 1
        if on_retry is not None:
            outcome = on_retry(value, clock() - start)
            if inspect.isawaitable(outcome):
                await outcome

    return PollResult(
        satisfied=until(value),
        value=value,
        attempts=attempts,
        elapsed=clock() - start,
    )


def unmounted(nodes: Sequence[CanvasNode]) -> list[CanvasNode]:
    return [node for node in nodes if not node.mounted]


async def wait_until_mounted(
    nodes: Sequence[CanvasNode],
    *,
    timeout: float = MAX_LOADING_TIME,
    interval: float = POLL_INTERVAL,
    started_at: float | None = None,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
    on_pending: Callable[[int, float], object] | None = None,
) -> None:
    """Block until every node in *nodes* is mounted.

    Args:
        nodes: Nodes that must be ready before rasterizing
        timeout: Ceiling in seconds
        interval: Seconds between samples
        started_at: ``clock()`` reading the ceiling counts from
        clock: Monotonic time source
        sleep: Coroutine used to yield between samples
        on_pending: Called after each re-sample with the pending count
            and the elapsed seconds

    Raises:
        LoadTimeoutError: If nodes are still unmounted at the ceiling
    """

    def report(pending: list[CanvasNode], elapsed: float) -> object:
        logger.debug("Waiting for %d nodes to finish loading...", len(pending))
        if on_pending is not None:
            return on_pending(len(pending), elapsed)
        return None

    result = await poll_until(
        lambda: unmounted(nodes),
        lambda pending: not pending,
        interval=interval,
        timeout=timeout,
        started_at=started_at,
        clock=clock,
        sleep=sleep,
        on_retry=report,
    )
    if not result.satisfied:
        raise LoadTimeoutError([node.id for node in result.value], timeout)
