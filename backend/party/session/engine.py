"""
Session engine: the single write path from devices to the session store.

Rules decide what the next state is; the engine reads the current records,
asks the rule, and writes the result back. Multi-record changes are ordered
so that a reader catching them half-way still sees a consistent, if stale,
session: observations are scoped by round_id, so clearing them first and
swapping the session content last never shows a reveal for content nobody
has seen.

Session writes carry only the fields that changed and are guarded by the
turn state the writer read. A writer whose snapshot went stale (a new round
landed in between) re-reads and re-decides instead of overwriting it.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog

from party.logic.codes import generate_code, normalize_code
from party.logic.content import default_library
from party.logic.enums import SessionStatus, TurnActionType, Variant
from party.logic.exceptions import InvalidActionError, SessionLimitError, SessionNotFoundError
from party.logic.rng import default_rng
from party.logic.rules.registry import build_rules
from party.logic.settings import DEFAULT_GUESS_SECONDS
from party.logic.state import Observation, Session, SessionConfig, TurnAction, utc_now
from party.session.seating import SeatAllocator
from shared.dal import OBSERVATIONS, SEATS, SESSIONS, StaleRecordError, WriteConflictError

if TYPE_CHECKING:
    import random
    from datetime import datetime

    from party.logic.content import ContentLibrary
    from party.logic.rules.base import GameRule
    from party.logic.state import SeatView
    from shared.dal import SessionStore

logger = structlog.get_logger()

DEFAULT_CODE_ATTEMPTS = 5
DEFAULT_WRITE_ATTEMPTS = 3
_SESSION_REAPER_INTERVAL = 60  # seconds between reaper checks


class GameEngine:
    def __init__(
        self,
        store: SessionStore,
        content: ContentLibrary | None = None,
        rng: random.Random | None = None,
        *,
        allocator: SeatAllocator | None = None,
        max_sessions: int | None = None,
        session_ttl_seconds: float = 0,
        max_code_attempts: int = DEFAULT_CODE_ATTEMPTS,
        max_write_attempts: int = DEFAULT_WRITE_ATTEMPTS,
    ) -> None:
        self._store = store
        self._rng = rng or default_rng()
        self._rules = build_rules(content or default_library(), self._rng)
        self._allocator = allocator or SeatAllocator(store)
        self._max_sessions = max_sessions
        self._session_ttl_seconds = session_ttl_seconds
        self._max_code_attempts = max_code_attempts
        self._max_write_attempts = max_write_attempts
        self._reaper_task: asyncio.Task[None] | None = None

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def allocator(self) -> SeatAllocator:
        return self._allocator

    def rule_for(self, variant: Variant | str) -> GameRule:
        return self._rules[Variant(variant)]

    # --- Sessions ---

    async def create_session(
        self,
        variant: Variant | str,
        capacity: int,
        *,
        team_size: int | None = None,
        redraw_on_miss: bool = False,
        guess_seconds: float = DEFAULT_GUESS_SECONDS,
    ) -> Session:
        """Create a session with freshly assigned first-round content.

        Raise UnsupportedSettingsError for bad capacity/config and
        AssignmentSourceEmptyError for an empty content pool, both before
        anything is written. Expired sessions do not count towards
        max_sessions.
        """
        variant = Variant(variant)
        rule = self.rule_for(variant)
        config = SessionConfig(team_size=team_size, redraw_on_miss=redraw_on_miss, guess_seconds=guess_seconds)
        rule.validate(capacity, config)
        rule.check_content()
        if self._max_sessions is not None:
            await self.expire_sessions()
            if len(await self._store.select(SESSIONS)) >= self._max_sessions:
                raise SessionLimitError(self._max_sessions)

        for attempt in range(1, self._max_code_attempts + 1):
            session = rule.create(generate_code(self._rng), capacity, config)
            try:
                await self._store.insert(SESSIONS, session.to_record())
            except WriteConflictError:
                logger.info("session code collision", code=session.code, attempt=attempt)
                if attempt == self._max_code_attempts:
                    raise
                continue
            logger.info("session created", code=session.code, variant=variant, capacity=capacity)
            return session
        raise AssertionError("unreachable")  # pragma: no cover

    async def find_session(self, code: str) -> Session | None:
        record = await self._store.get(SESSIONS, (normalize_code(code),))
        return Session.from_record(record) if record is not None else None

    async def load_session(self, code: str) -> Session:
        session = await self.find_session(code)
        if session is None:
            raise SessionNotFoundError(normalize_code(code))
        return session

    # --- Expiry ---

    async def expire_sessions(self, now: datetime | None = None) -> int:
        """Delete sessions older than the TTL, with their seats and observations.

        The session record goes first, so devices following it stop on
        not-found before its seats disappear. Return the number expired.
        A TTL of 0 disables expiry.
        """
        if self._session_ttl_seconds <= 0:
            return 0
        cutoff = (now or utc_now()) - timedelta(seconds=self._session_ttl_seconds)
        expired = [
            session
            for session in (Session.from_record(r) for r in await self._store.select(SESSIONS))
            if session.created_at < cutoff
        ]
        for session in expired:
            await self._store.delete(SESSIONS, {"code": session.code})
            await self._store.delete(SEATS, {"code": session.code})
            await self._store.delete(OBSERVATIONS, {"code": session.code})
            logger.info(
                "session expired",
                code=session.code,
                created_at=session.created_at.isoformat(),
                ttl_seconds=self._session_ttl_seconds,
            )
        return len(expired)

    def start_session_reaper(self) -> None:
        """Start the periodic expiry task. Idempotent."""
        if self._session_ttl_seconds <= 0:
            return
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        self._reaper_task = asyncio.create_task(self._session_reaper_loop())

    async def stop_session_reaper(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _session_reaper_loop(self) -> None:
        while True:
            await asyncio.sleep(_SESSION_REAPER_INTERVAL)
            try:
                await self.expire_sessions()
            except Exception:
                logger.exception("session reaper encountered an error")

    # --- Seats and observations ---

    async def claim_seat(self, session: Session, requested: int | None = None, *, host: bool = False) -> int:
        return await self._allocator.claim_seat(session, requested, host=host)

    async def claimed_seats(self, code: str) -> set[int]:
        return await self._allocator.claimed_seats(normalize_code(code))

    async def observed_seats(self, session: Session) -> set[int]:
        """Seats that have observed the session's current content."""
        records = await self._store.select(OBSERVATIONS, {"code": session.code})
        return {r["seat"] for r in records if r["round_id"] == session.content.round_id}

    async def record_observation(self, session: Session, seat: int) -> bool:
        """Mark a seat as having seen the current round. Return False if it already had.

        Raise InvalidActionError for a seat outside the table or one nobody
        has claimed.
        """
        await self._require_claim(session, seat)
        observation = Observation(code=session.code, seat=seat, round_id=session.content.round_id)
        try:
            await self._store.insert(OBSERVATIONS, observation.to_record())
        except WriteConflictError:
            existing = await self._store.get(OBSERVATIONS, (session.code, seat))
            if existing is not None and existing["round_id"] == session.content.round_id:
                return False
            # Left over from an earlier round whose cleanup has not landed yet.
            await self._store.update(
                OBSERVATIONS,
                (session.code, seat),
                {"round_id": observation.round_id, "observed_at": observation.to_record()["observed_at"]},
            )
        logger.debug("seat observed", code=session.code, seat=seat, round_id=session.content.round_id)
        return True

    async def view_seat(self, code: str, seat: int) -> SeatView:
        """Return a claimed seat's view, counting the fetch as an observation where the variant does."""
        session = await self.load_session(code)
        if session.settings.observe_on_fetch:
            await self.record_observation(session, seat)
        else:
            await self._require_claim(session, seat)
        return self.seat_view(session, seat)

    def seat_view(self, session: Session, seat: int) -> SeatView:
        return self.rule_for(session.variant).seat_view(session, seat)

    async def _require_claim(self, session: Session, seat: int) -> None:
        self.rule_for(session.variant).seat_view(session, seat)
        if await self._store.get(SEATS, (session.code, seat)) is None:
            raise InvalidActionError(f"seat {seat} has not been claimed")

    # --- Transitions ---

    async def reveal(self, code: str) -> Session:
        """Mark the round revealed once every seat has observed it. Idempotent."""
        for attempt in range(1, self._max_write_attempts + 1):
            session = await self.load_session(code)
            if not session.settings.observation_gated:
                raise InvalidActionError(f"{session.variant.value} rounds are not revealed by observation")
            if session.turn.revealed:
                return session
            observed = await self.observed_seats(session)
            if len(observed) < session.capacity:
                raise InvalidActionError(f"{len(observed)} of {session.capacity} seats have observed the round")
            updated = session.model_copy(
                update={"status": SessionStatus.ACTIVE, "turn": session.turn.model_copy(update={"revealed": True})}
            )
            if await self._write(session, updated, attempt):
                logger.info("round revealed", code=session.code, round_number=session.turn.round_number)
                return updated
        raise AssertionError("unreachable")  # pragma: no cover

    async def activate(self, code: str, expected_version: int | None = None) -> Session:
        """Start play once every seat is claimed."""
        return await self.apply(code, TurnAction(type=TurnActionType.START, expected_version=expected_version))

    async def apply(self, code: str, action: TurnAction) -> Session:
        """Apply a turn action and persist the resulting session in a single write."""
        if action.type == TurnActionType.NEW_ROUND:
            return await self.new_round(code, action.expected_version)
        for attempt in range(1, self._max_write_attempts + 1):
            session = await self.load_session(code)
            if action.type == TurnActionType.START:
                claimed = await self.claimed_seats(session.code)
                if len(claimed) < session.capacity:
                    raise InvalidActionError(f"waiting for seats: {len(claimed)} of {session.capacity} claimed")
            updated = self.rule_for(session.variant).transition(session, action)
            if updated is session:
                logger.info(
                    "stale action ignored",
                    code=session.code,
                    action=action.type,
                    expected_version=action.expected_version,
                    version=session.turn.version,
                )
                return session
            if await self._write(session, updated, attempt):
                logger.debug("action applied", code=session.code, action=action.type, version=updated.turn.version)
                return updated
        raise AssertionError("unreachable")  # pragma: no cover

    async def new_round(self, code: str, expected_version: int | None = None) -> Session:
        """Reset the round: clear observations, clear seats if the variant does, then swap content."""
        for attempt in range(1, self._max_write_attempts + 1):
            session = await self.load_session(code)
            if expected_version is not None and expected_version != session.turn.version:
                logger.info("stale new round ignored", code=session.code, expected_version=expected_version)
                return session
            updated = self.rule_for(session.variant).new_round(session)
            await self._store.delete(OBSERVATIONS, {"code": session.code})
            if session.settings.clears_seats_on_new_round:
                await self._allocator.release_all(session.code)
            if await self._write(session, updated, attempt):
                logger.info("new round", code=session.code, round_number=updated.turn.round_number)
                return updated
        raise AssertionError("unreachable")  # pragma: no cover

    async def _write(self, previous: Session, updated: Session, attempt: int) -> bool:
        """Persist the fields that changed, provided the stored turn is still the one read.

        Return False when it was not and the caller should re-read; raise
        StaleRecordError once the write budget is spent.
        """
        before, after = previous.to_record(), updated.to_record()
        patch = {name: value for name, value in after.items() if before.get(name) != value}
        try:
            stored = await self._store.update(SESSIONS, (previous.code,), patch, expected={"turn": before["turn"]})
        except StaleRecordError:
            logger.info("session changed under a write, retrying", code=previous.code, attempt=attempt)
            if attempt == self._max_write_attempts:
                raise
            return False
        if stored is None:
            raise SessionNotFoundError(previous.code)
        return True
