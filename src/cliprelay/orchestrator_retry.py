#!/usr/bin/env python3
"""Backoff retry of stuck offline-queue drains.

A drain that stops on a failing operation leaves it at the head of the
queue. run_until_drained() keeps retrying the drain with exponential
backoff capped at the configured ceiling, using tenacity, until the
queue empties or the task is cancelled (connectivity lost, shutdown).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_never,
    wait_exponential,
)

from cliprelay.errors import NotConnected, TransientStoreFailure

if TYPE_CHECKING:
    from cliprelay.config import SyncConfig
    from cliprelay.offline_queue import DrainResult

logger = logging.getLogger(__name__)


def drain_retrying(config: SyncConfig) -> AsyncRetrying:
    """Build the retry controller for queue drains.

    Args:
        config: Supplies initial wait, multiplier and ceiling.

    Returns:
        An AsyncRetrying that retries transient failures forever.
    """
    return AsyncRetrying(
        wait=wait_exponential(
            multiplier=config.retry_initial_wait,
            exp_base=config.retry_multiplier,
            min=config.retry_initial_wait,
            max=config.retry_max_wait,
        ),
        retry=retry_if_exception_type((TransientStoreFailure, NotConnected)),
        stop=stop_never,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


async def run_until_drained(
    drain: Callable[[], Awaitable[DrainResult]],
    config: SyncConfig,
) -> DrainResult:
    """Retry drain with backoff until the queue is empty.

    The first retry waits the initial delay, since the caller has just
    seen the drain fail.

    Args:
        drain: Coroutine function performing one drain pass.
        config: Retry timing.

    Returns:
        The DrainResult of the pass that emptied the queue.

    Raises:
        SyncError: For failures that are not worth retrying.
    """
    await asyncio.sleep(config.retry_initial_wait)
    async for attempt in drain_retrying(config):
        with attempt:
            result = await drain()
            if not result.completed and result.error is not None:
                raise result.error
    return result
