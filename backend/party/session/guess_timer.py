"""Per-device guess countdown bound to the charades turn version."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

import structlog

from party.logic.settings import DEFAULT_GUESS_SECONDS
from party.logic.timer import CountdownTimer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = structlog.get_logger()


class GuessTimer:
    """
    Keep one countdown armed while it is this device's turn to guess.

    Each turn version gets at most one countdown. A version change while the
    device still holds the turn re-arms a fresh countdown; losing the turn
    cancels it. On expiry on_expire receives the version the countdown was
    armed for, so a late expiry can be recognized as stale downstream.
    """

    def __init__(
        self,
        on_expire: Callable[[int], Awaitable[None]],
        *,
        seconds: float = DEFAULT_GUESS_SECONDS,
        timer: CountdownTimer | None = None,
    ) -> None:
        self._on_expire = on_expire
        self._seconds = seconds
        self._timer = timer or CountdownTimer()
        self._armed_version: int | None = None
        self._fired_version: int | None = None

    @property
    def is_armed(self) -> bool:
        return self._timer.is_armed

    @property
    def remaining(self) -> float:
        return self._timer.remaining

    @property
    def armed_version(self) -> int | None:
        return self._armed_version if self._timer.is_armed else None

    def sync(self, *, is_my_turn: bool, version: int, seconds: float | None = None) -> None:
        if not is_my_turn:
            self.cancel()
            return
        if version in (self.armed_version, self._fired_version):
            return
        self._armed_version = version
        self._timer.start(seconds if seconds is not None else self._seconds, partial(self._expire, version))
        logger.debug("guess timer armed", version=version)

    def cancel(self) -> None:
        self._armed_version = None
        self._timer.cancel()

    async def _expire(self, version: int) -> None:
        self._armed_version = None
        self._fired_version = version
        logger.info("guess timer expired", version=version)
        await self._on_expire(version)
