"""
Per-device reconciliation of session state.

A device never trusts the order or count of change notifications: every
notification, poll tick or local action triggers a full re-read, and one-shot
side effects (the reveal notification, the my-turn notification) are keyed by
the round_id or the turn pointer edge they belong to.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict

from party.logic.enums import SessionStatus, TurnActionType
from party.logic.exceptions import InvalidActionError, SeatingFullError, SessionNotFoundError
from party.logic.state import SeatView, Session, TurnAction
from party.session.guess_timer import GuessTimer
from shared.dal import OBSERVATIONS, SEATS, SESSIONS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from party.session.engine import GameEngine
    from shared.dal import ChangeEvent, Subscription

logger = structlog.get_logger()


class DeviceView(BaseModel):
    """Snapshot of what one device currently knows."""

    model_config = ConfigDict(frozen=True)

    code: str
    seat: int | None = None
    is_host: bool = False
    session: Session | None = None
    seat_view: SeatView | None = None
    claimed_seats: int = 0
    observed_seats: int = 0
    guess_seconds_remaining: float = 0.0
    not_found: bool = False
    seat_lost: bool = False

    @property
    def all_seated(self) -> bool:
        return self.session is not None and self.claimed_seats >= self.session.capacity

    @property
    def all_observed(self) -> bool:
        return self.session is not None and self.observed_seats >= self.session.capacity


class DeviceReconciler:
    def __init__(
        self,
        engine: GameEngine,
        code: str,
        *,
        seat: int | None = None,
        host: bool = False,
        notify: Callable[[], Awaitable[None]] | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._engine = engine
        self._code = code
        self._seat = seat
        self._host = host
        self._notify = notify
        self._poll_interval = poll_interval

        self._lock = asyncio.Lock()
        self._subscriptions: list[Subscription] = []
        self._poll_task: asyncio.Task[None] | None = None
        self._guess_timer = GuessTimer(self._on_guess_expired)
        self._stopped = False

        self._session: Session | None = None
        self._claimed: set[int] = set()
        self._observed: set[int] = set()
        self._round_id: str | None = None
        self._observed_round: str | None = None
        self._reveal_handled = False
        self._last_pointer: int | None = None
        self._not_found = False
        self._seat_lost = False

    @property
    def seat(self) -> int | None:
        return self._seat

    @property
    def guess_timer(self) -> GuessTimer:
        return self._guess_timer

    @property
    def view(self) -> DeviceView:
        session = self._session
        seat_view = None
        if session is not None and self._seat is not None and not self._seat_lost:
            seat_view = self._engine.seat_view(session, self._seat)
        return DeviceView(
            code=self._code,
            seat=self._seat,
            is_host=self._host,
            session=session,
            seat_view=seat_view,
            claimed_seats=len(self._claimed),
            observed_seats=len(self._observed),
            guess_seconds_remaining=self._guess_timer.remaining,
            not_found=self._not_found,
            seat_lost=self._seat_lost,
        )

    async def start(self) -> DeviceView:
        """Load the session, claim or re-validate the seat, then follow changes.

        Raise SessionNotFoundError or SeatingFullError; both are terminal for
        this device.
        """
        try:
            session = await self._engine.load_session(self._code)
        except SessionNotFoundError:
            self._not_found = True
            raise
        self._code = session.code
        await self._ensure_seat(session)
        store = self._engine.store
        self._subscriptions = [
            store.subscribe(table, {"code": self._code}, self._on_change) for table in (SESSIONS, SEATS, OBSERVATIONS)
        ]
        if self._poll_interval:
            self._poll_task = asyncio.create_task(self._poll())
        logger.info("device joined", code=self._code, seat=self._seat, host=self._host)
        return await self.refresh()

    async def refresh(self) -> DeviceView:
        """Re-read the session and run the one-shot side effects it calls for."""
        if self._stopped:
            return self.view
        async with self._lock:
            await self._reconcile()
        return self.view

    async def observe(self) -> DeviceView:
        """Acknowledge the current round's content (explicit reveal tap)."""
        if self._session is None or self._seat is None:
            raise InvalidActionError("device has no seat to observe with")
        await self._engine.record_observation(self._session, self._seat)
        self._observed_round = self._session.content.round_id
        return await self.refresh()

    async def act(self, action_type: TurnActionType | str) -> DeviceView:
        """Apply a transition against the locally observed turn version.

        The guess timer is left alone here: the refresh after a successful
        action re-syncs it, and a failed action must not disarm it.
        """
        if self._session is None:
            raise InvalidActionError("session is not loaded")
        action = TurnAction(
            type=TurnActionType(action_type),
            seat=None if self._host else self._seat,
            expected_version=self._session.turn.version,
        )
        await self._engine.apply(self._code, action)
        return await self.refresh()

    async def stop(self) -> None:
        self._stopped = True
        poll_task = self._teardown()
        if poll_task is not None and poll_task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await poll_task
        logger.info("device left", code=self._code, seat=self._seat)

    def _teardown(self) -> asyncio.Task[None] | None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []
        self._guess_timer.cancel()
        poll_task, self._poll_task = self._poll_task, None
        if poll_task is not None and not poll_task.done():
            poll_task.cancel()
        return poll_task

    async def _reconcile(self) -> None:
        session = await self._engine.find_session(self._code)
        if session is None:
            logger.warning("session disappeared", code=self._code)
            self._not_found = True
            self._stopped = True
            self._teardown()
            return

        first_load = self._round_id is None
        if session.content.round_id != self._round_id:
            if not first_load:
                logger.info("round changed", code=self._code, round_number=session.turn.round_number)
                self._reveal_handled = False
                if session.settings.clears_seats_on_new_round and not self._seat_lost:
                    try:
                        await self._ensure_seat(session)
                    except SeatingFullError:
                        logger.warning("seat lost after round reset", code=self._code)
            self._round_id = session.content.round_id
        if first_load and session.turn.revealed:
            self._reveal_handled = True

        if self._should_auto_observe(session) and self._observed_round != session.content.round_id:
            try:
                await self._engine.record_observation(session, self._seat)
            except InvalidActionError:
                # The claim was cleared by a round reset this read has not seen yet.
                logger.debug("observation deferred until the seat is claimed", code=self._code, seat=self._seat)
            else:
                self._observed_round = session.content.round_id

        self._claimed = await self._engine.claimed_seats(self._code)
        self._observed = await self._engine.observed_seats(session)
        session = await self._maybe_reveal(session)
        session = await self._maybe_activate(session)
        self._session = session

        pointer = self._engine.rule_for(session.variant).turn_pointer(session)
        mine = self._seat is not None and not self._seat_lost and pointer == self._seat
        if mine and not first_load and self._last_pointer != self._seat:
            logger.info("my turn", code=self._code, seat=self._seat)
            await self._fire_notify()
        self._last_pointer = pointer

        self._guess_timer.sync(
            is_my_turn=mine and session.settings.guess_timer,
            version=session.turn.version,
            seconds=session.config.guess_seconds,
        )

    async def _maybe_reveal(self, session: Session) -> Session:
        if not session.settings.observation_gated or self._reveal_handled:
            return session
        if not session.turn.revealed:
            if len(self._observed) < session.capacity:
                return session
            try:
                session = await self._engine.reveal(self._code)
            except InvalidActionError:
                logger.debug("reveal raced with a round reset", code=self._code)
                return session
            if not session.turn.revealed or session.content.round_id != self._round_id:
                return session
        self._reveal_handled = True
        logger.info("round ready", code=self._code, round_number=session.turn.round_number)
        await self._fire_notify()
        return session

    async def _maybe_activate(self, session: Session) -> Session:
        if not session.settings.auto_start_when_seated or session.status != SessionStatus.WAITING:
            return session
        if len(self._claimed) < session.capacity:
            return session
        try:
            return await self._engine.activate(self._code, expected_version=session.turn.version)
        except InvalidActionError:
            logger.debug("auto start skipped", code=self._code)
            return session

    def _should_auto_observe(self, session: Session) -> bool:
        if self._seat is None or self._seat_lost:
            return False
        return session.settings.observation_gated and (self._host or session.settings.observe_on_fetch)

    async def _ensure_seat(self, session: Session) -> None:
        try:
            seat = await self._engine.claim_seat(session, self._seat, host=self._host)
        except SeatingFullError:
            self._seat_lost = True
            raise
        if self._seat is not None and seat != self._seat:
            logger.warning("seat moved", code=self._code, previous=self._seat, seat=seat)
        self._seat = seat

    async def _fire_notify(self) -> None:
        if self._notify is not None:
            await self._notify()

    async def _on_change(self, event: ChangeEvent) -> None:
        await self.refresh()

    async def _on_guess_expired(self, version: int) -> None:
        action = TurnAction(type=TurnActionType.NOT_GUESSED, seat=self._seat, expected_version=version)
        await self._engine.apply(self._code, action)
        await self.refresh()

    async def _poll(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.refresh()
            except Exception:
                logger.exception("poll refresh failed", code=self._code)
