"""Async CRUD repository for FlowStateRecord.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods ``flush()`` or run a single statement, and never commit.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from dental_flow_db.models.flow_state import UNIQUE_KEY_CONSTRAINT, FlowStateRecord


class FlowStateRepository:
    """Async read/write operations on the ``flow_states`` table."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get(
        self, db: AsyncSession, *, session_id: str, state_key: str
    ) -> FlowStateRecord | None:
        """Fetch the row for one session's flow, or ``None``."""
        stmt = select(FlowStateRecord).where(
            FlowStateRecord.session_id == session_id,
            FlowStateRecord.state_key == state_key,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def upsert(
        self,
        db: AsyncSession,
        *,
        session_id: str,
        state_key: str,
        payload: dict[str, Any],
    ) -> FlowStateRecord:
        """Insert the row or replace its payload in one statement.

        ``INSERT .. ON CONFLICT (session_id, state_key) DO UPDATE`` so two
        first saves racing on a new key cannot both insert.  Last writer
        wins on the payload.
        """
        stmt = pg_insert(FlowStateRecord).values(
            session_id=session_id, state_key=state_key, payload=payload
        )
        stmt = stmt.on_conflict_do_update(
            constraint=UNIQUE_KEY_CONSTRAINT,
            set_={
                "payload": stmt.excluded.payload,
                "updated_at": datetime.now(timezone.utc),
            },
        ).returning(FlowStateRecord)
        result = await db.execute(
            stmt, execution_options={"populate_existing": True}
        )
        return result.scalar_one()

    async def delete(
        self, db: AsyncSession, *, session_id: str, state_key: str
    ) -> bool:
        """Delete one row.  Returns ``True`` if a row was removed."""
        stmt = delete(FlowStateRecord).where(
            FlowStateRecord.session_id == session_id,
            FlowStateRecord.state_key == state_key,
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def purge_older_than(
        self,
        db: AsyncSession,
        minutes: int,
        *,
        now: datetime | None = None,
    ) -> int:
        """Delete rows not written for at least *minutes*.  Returns the count."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(minutes=minutes)
        stmt = delete(FlowStateRecord).where(FlowStateRecord.updated_at <= cutoff)
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount
