"""PostgreSQL implementation of ``dental_flow.interfaces.SessionBackend``.

Each call opens its own ``AsyncSession`` from the shared factory and commits
before returning, so a saved state is durable once ``set`` completes.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dental_flow.interfaces import SessionBackend
from dental_flow_db.engine import get_session_factory
from dental_flow_db.repository import FlowStateRepository

logger = logging.getLogger(__name__)


class DatabaseSessionBackend(SessionBackend):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        repo: FlowStateRepository | None = None,
    ) -> None:
        self._session_factory = session_factory or get_session_factory()
        self._repo = repo or FlowStateRepository()

    async def get(self, session_id: str, key: str) -> dict[str, Any] | None:
        async with self._session_factory() as db:
            row = await self._repo.get(db, session_id=session_id, state_key=key)
            return dict(row.payload) if row is not None else None

    async def set(self, session_id: str, key: str, value: dict[str, Any]) -> None:
        async with self._session_factory() as db:
            await self._repo.upsert(
                db, session_id=session_id, state_key=key, payload=value
            )
            await db.commit()

    async def delete(self, session_id: str, key: str) -> None:
        async with self._session_factory() as db:
            removed = await self._repo.delete(db, session_id=session_id, state_key=key)
            await db.commit()
        if removed:
            logger.debug("Deleted flow state %s", key)
