"""dental_flow_db - PostgreSQL persistence for in-progress flow states.

Provides the ORM model, async engine factory, repository and a
``SessionBackend`` implementation the server plugs into the engine.
"""

from dental_flow_db.backend import DatabaseSessionBackend
from dental_flow_db.engine import dispose_engine, get_engine, get_session_factory
from dental_flow_db.models.flow_state import FlowStateRecord
from dental_flow_db.repository import FlowStateRepository

__all__ = [
    "DatabaseSessionBackend",
    "FlowStateRecord",
    "FlowStateRepository",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
]
