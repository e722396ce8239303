"""StateStore and ExpiryGuard.

``StateStore`` is the only component that reads or writes persisted flow
bytes.  It turns backend records into ``FlowState`` values and back, and
stamps ``last_updated_on`` on every write so callers never set it.

``ExpiryGuard`` compares that stamp with the clock.  A flow idle for the TTL
(20 minutes by default) or longer is deleted from the store and reported as
expired instead of being handed back half-filled.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from dental_flow.constants import STATE_TTL_MINUTES
from dental_flow.interfaces import SessionBackend
from dental_flow.models.state import FlowState
from dental_flow.models.step import Freshness

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StateStore:
    """get / set / clear of ``FlowState`` records on a session backend."""

    def __init__(self, backend: SessionBackend, clock: Clock = utc_now) -> None:
        self._backend = backend
        self._clock = clock

    @property
    def clock(self) -> Clock:
        return self._clock

    async def get(self, session_id: str, key: str) -> FlowState | None:
        """Return the stored flow, or None if absent.

        A record that no longer validates is evicted and treated as absent.
        """
        raw = await self._backend.get(session_id, key)
        if raw is None:
            return None
        try:
            return FlowState.model_validate(raw)
        except ValidationError as exc:
            logger.warning(
                "Discarding unreadable flow record (%d validation errors)", exc.error_count()
            )
            await self._backend.delete(session_id, key)
            return None

    async def set(self, session_id: str, key: str, state: FlowState) -> FlowState:
        """Persist *state* with a fresh ``last_updated_on`` and return the stamped copy.

        The stamp never moves backwards, even if the clock does.
        """
        stamp = max(self._clock(), state.last_updated_on)
        stamped = state.model_copy(update={"last_updated_on": stamp})
        await self._backend.set(session_id, key, stamped.model_dump(mode="json"))
        return stamped

    async def clear(self, session_id: str, key: str) -> None:
        await self._backend.delete(session_id, key)


class ExpiryGuard:
    """Evicts flows idle for ``ttl_minutes`` or longer."""

    def __init__(self, ttl_minutes: int = STATE_TTL_MINUTES, clock: Clock = utc_now) -> None:
        self._ttl = ttl_minutes
        self._clock = clock

    def elapsed_minutes(self, state: FlowState) -> int:
        """Whole minutes since the last write, truncated."""
        return int((self._clock() - state.last_updated_on).total_seconds() // 60)

    def check(self, state: FlowState) -> Freshness:
        if self.elapsed_minutes(state) >= self._ttl:
            return Freshness.EXPIRED
        return Freshness.FRESH

    async def enforce(
        self, store: StateStore, session_id: str, key: str, state: FlowState
    ) -> Freshness:
        """``check`` and, if expired, delete the record from *store*."""
        freshness = self.check(state)
        if freshness is Freshness.EXPIRED:
            await store.clear(session_id, key)
            logger.info("Flow expired after %d idle minutes; evicted", self.elapsed_minutes(state))
        return freshness
