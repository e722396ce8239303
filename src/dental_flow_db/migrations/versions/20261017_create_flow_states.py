"""Create flow_states table.

One row per (session_id, state_key) holding the serialized flow state as
JSONB.  ``updated_at`` is indexed for the stale-state purge.

Revision ID: 20261017_flow_states
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261017_flow_states"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "flow_states",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.Text, nullable=False),
        sa.Column("state_key", sa.Text, nullable=False),
        sa.Column("payload", JSONB, nullable=False),
        sa.Column(
            "created_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("session_id", "state_key", name="uq_session_state_key"),
    )
    op.create_index("ix_flow_states_updated_at", "flow_states", ["updated_at"])


def downgrade() -> None:
    op.drop_index("ix_flow_states_updated_at", table_name="flow_states")
    op.drop_table("flow_states")
