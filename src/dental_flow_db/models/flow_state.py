"""FlowStateRecord ORM model - one row per (session, flow key).

The whole flow state is stored as a single JSONB document so that a step
request reads and writes exactly one row.  The row is keyed by the caller's
session identifier plus the derived state key (``<family>-flow-<uuid>``),
which keeps one session's flows invisible to every other session.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Index, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from dental_flow_db.models.base import Base

UNIQUE_KEY_CONSTRAINT = "uq_session_state_key"


class FlowStateRecord(Base):
    __tablename__ = "flow_states"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    session_id: Mapped[str] = mapped_column(Text, nullable=False)
    state_key: Mapped[str] = mapped_column(Text, nullable=False)

    # --- Document ---
    # FlowState.model_dump(mode="json")
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("session_id", "state_key", name=UNIQUE_KEY_CONSTRAINT),
        Index("ix_flow_states_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<FlowStateRecord(id={self.id!s}, session={self.session_id!r}, "
            f"key={self.state_key!r})>"
        )
