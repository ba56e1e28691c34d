"""
Common utilities for background maintenance tasks.

This module exposes helpers for scheduling periodic jobs and stopping them
when the application shuts down. Stopping is cooperative: the loop checks
its stop event between cycles, so a cycle that is already running is
allowed to finish.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


async def startup(
    task_fn: Callable[[], Awaitable[object]],
    interval: float,
    stop: asyncio.Event,
) -> asyncio.Task:
    """
    Schedule ``task_fn`` to run every ``interval`` seconds until ``stop`` is set.

    Any exceptions raised by the task function are logged but do not stop the
    periodic execution.

    Returns the created :class:`asyncio.Task` handle.
    """

    async def _periodic() -> None:
        while True:
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
                return
            except asyncio.TimeoutError:
                pass
            try:
                await task_fn()
            except Exception as exc:  # pragma: no cover - best effort logging
                logger.error("Maintenance cycle failed: %s", exc)

    return asyncio.create_task(_periodic())


async def shutdown(task: asyncio.Task | None, stop: asyncio.Event) -> None:
    """
    Stop a task started with :func:`startup` and wait for it to exit.

    The function is tolerant of ``None``.
    """

    stop.set()
    if not task:
        return
    await task
