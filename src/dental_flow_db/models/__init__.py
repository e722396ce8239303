"""ORM models for dental_flow_db."""

from dental_flow_db.models.base import Base
from dental_flow_db.models.flow_state import FlowStateRecord

__all__ = ["Base", "FlowStateRecord"]
