"""dental_flow - application-flow state machine for dental benefit applications.

Public API:
    FlowEngine        - load / save / step / child / review / submit operations
    FlowGraphStore    - loads the YAML step graphs into typed models
    StateStore        - FlowState persistence over a session backend
    ExpiryGuard       - evicts flows idle past the TTL
    FlowState         - root record of one application or renewal
    ChildState        - one dependent member of a flow

Components (pure, synchronous):
    StepPreconditionEvaluator - may a step be entered now?
    BranchingRouter           - which step follows a completed one?
    ReviewValidator           - is the flow complete for submission?

Session backends:
    SessionBackend        - ABC for session-keyed record storage
    MemorySessionBackend  - in-process dict (dev / tests)
    FileSessionBackend    - JSON files (dev)

Collaborator interfaces:
    Collaborators, CsrfValidator, AddressCorrector,
    ClientApplicationFinder, ApplicationSubmitter, AuditEmitter
"""

from dental_flow.backends import FileSessionBackend, MemorySessionBackend
from dental_flow.engine import FlowEngine
from dental_flow.errors import (
    CollaboratorError,
    CsrfRejectedError,
    FlowError,
    FlowExpiredError,
    FlowNotFoundError,
    IncompleteForSubmissionError,
    InvalidIdentifierError,
    StaleChildReferenceError,
)
from dental_flow.graph import FlowGraphStore
from dental_flow.interfaces import (
    AddressCorrector,
    ApplicationSubmitter,
    AuditEmitter,
    ClientApplicationFinder,
    Collaborators,
    CsrfValidator,
    SessionBackend,
)
from dental_flow.models.state import ChildState, FlowState
from dental_flow.preconditions import StepPreconditionEvaluator
from dental_flow.review import ReviewValidator
from dental_flow.router import BranchingRouter
from dental_flow.store import ExpiryGuard, StateStore

__all__ = [
    # Engine & stores
    "FlowEngine",
    "FlowGraphStore",
    "StateStore",
    "ExpiryGuard",
    # State
    "FlowState",
    "ChildState",
    # Components
    "StepPreconditionEvaluator",
    "BranchingRouter",
    "ReviewValidator",
    # Backends
    "SessionBackend",
    "MemorySessionBackend",
    "FileSessionBackend",
    # Collaborators
    "Collaborators",
    "CsrfValidator",
    "AddressCorrector",
    "ClientApplicationFinder",
    "ApplicationSubmitter",
    "AuditEmitter",
    # Errors
    "FlowError",
    "InvalidIdentifierError",
    "FlowNotFoundError",
    "FlowExpiredError",
    "StaleChildReferenceError",
    "IncompleteForSubmissionError",
    "CollaboratorError",
    "CsrfRejectedError",
]
