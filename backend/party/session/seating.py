"""
Exclusive seat claiming under concurrent joins.

The store's primary key on (code, seat) is the only concurrency control:
two devices that compute the same free index race on insert, and the loser
re-reads the claims and tries again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from party.logic.exceptions import SeatingFullError
from party.logic.state import SeatClaim
from shared.dal import SEATS, WriteConflictError

if TYPE_CHECKING:
    from party.logic.state import Session
    from shared.dal import SessionStore

logger = structlog.get_logger()

DEFAULT_CLAIM_ATTEMPTS = 3


class SeatAllocator:
    def __init__(self, store: SessionStore, *, max_attempts: int = DEFAULT_CLAIM_ATTEMPTS) -> None:
        if max_attempts < 2:  # noqa: PLR2004
            raise ValueError("max_attempts must allow at least one retry")
        self._store = store
        self._max_attempts = max_attempts

    async def claimed_seats(self, code: str) -> set[int]:
        return {record["seat"] for record in await self._store.select(SEATS, {"code": code})}

    async def claim_seat(self, session: Session, requested: int | None = None, *, host: bool = False) -> int:
        """Claim a seat for a device and return its index.

        The host always takes the reserved top index. A device that already
        knows its seat re-validates the claim and re-claims the same index if
        the claim has disappeared (seat-clearing variants wipe claims between
        rounds). Anyone else gets the lowest free index.
        """
        if host and session.host_seat is not None:
            return await self._claim_host(session)
        if requested is not None and self._claimable(session, requested):
            if await self._store.get(SEATS, (session.code, requested)) is not None:
                return requested
            if await self._try_insert(session, requested):
                logger.info("seat reclaimed", code=session.code, seat=requested)
                return requested
            logger.info("previous seat taken, claiming another", code=session.code, seat=requested)
        return await self._claim_lowest(session)

    async def release_all(self, code: str) -> int:
        """Drop every seat claim of a session."""
        return await self._store.delete(SEATS, {"code": code})

    async def _claim_host(self, session: Session) -> int:
        seat = session.host_seat
        if await self._store.get(SEATS, (session.code, seat)) is None and await self._try_insert(session, seat):
            logger.info("host seat claimed", code=session.code, seat=seat)
        # An existing claim on the reserved index always belongs to the host.
        return seat

    async def _claim_lowest(self, session: Session) -> int:
        for attempt in range(1, self._max_attempts + 1):
            claims = await self.claimed_seats(session.code)
            if len(claims) >= session.capacity:
                raise SeatingFullError(session.code, session.capacity)
            available = [
                seat for seat in range(session.capacity) if seat not in claims and seat != session.host_seat
            ]
            if not available:
                raise SeatingFullError(session.code, session.capacity)
            seat = available[0]
            if await self._try_insert(session, seat):
                logger.info("seat claimed", code=session.code, seat=seat, attempt=attempt)
                return seat
            logger.info("seat claim conflict", code=session.code, seat=seat, attempt=attempt)
        logger.warning("seat claim retries exhausted", code=session.code, attempts=self._max_attempts)
        raise SeatingFullError(session.code, session.capacity)

    async def _try_insert(self, session: Session, seat: int) -> bool:
        try:
            await self._store.insert(SEATS, SeatClaim(code=session.code, seat=seat).to_record())
        except WriteConflictError:
            return False
        return True

    @staticmethod
    def _claimable(session: Session, seat: int) -> bool:
        return 0 <= seat < session.capacity and seat != session.host_seat
