"""
Cancellable countdown used for the charades guess window.

A countdown fires its callback at most once per start(). cancel() may be
called at any point, including while the sleep has already finished but the
callback task has not resumed yet; a generation counter makes such late
wake-ups no-ops.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class CountdownTimer:
    """Single-shot asyncio countdown with a generation guard."""

    def __init__(self) -> None:
        self._task: asyncio.Task[None] | None = None
        self._generation = 0
        self._deadline: float | None = None

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def remaining(self) -> float:
        """Seconds until expiry, or 0 when not armed."""
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - time.monotonic())

    def start(self, duration: float, on_expire: Callable[[], Awaitable[None]]) -> None:
        """Arm a fresh countdown, replacing any armed one."""
        self.cancel()
        generation = self._generation
        self._deadline = time.monotonic() + duration
        self._task = asyncio.create_task(self._run(generation, duration, on_expire))

    def cancel(self) -> None:
        self._generation += 1
        self._deadline = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, generation: int, duration: float, on_expire: Callable[[], Awaitable[None]]) -> None:
        try:
            await asyncio.sleep(duration)
            if generation != self._generation:
                return
            # Disarm before firing so the callback may cancel() or start() freely.
            self._task = None
            self._deadline = None
            await on_expire()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("timer callback failed")
