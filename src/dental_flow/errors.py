"""Exception taxonomy for the flow engine.

Locally recoverable conditions (bad id, missing or expired flow) share one
recovery at the HTTP boundary: send the user to the start-over page.  Step
preconditions are not exceptions at all; they come back as
:class:`~dental_flow.models.step.StepRedirect` values.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dental_flow.models.step import MissingField


class FlowError(Exception):
    """Base class for every error raised by the SDK."""


class InvalidIdentifierError(FlowError, ValueError):
    """Malformed flow id or unknown flow family."""


class FlowNotFoundError(FlowError, LookupError):
    """No persisted flow for the derived key."""


class FlowExpiredError(FlowNotFoundError):
    """The flow was idle past the TTL and has been evicted."""


class StaleChildReferenceError(FlowError, LookupError):
    """An update targeted a child id that is not in the flow."""

    def __init__(self, child_id: str) -> None:
        super().__init__(f"Child not found in flow: child_id={child_id}")
        self.child_id = child_id


class IncompleteForSubmissionError(FlowError):
    """Review found outstanding fields; nothing was submitted."""

    def __init__(self, missing: list[MissingField]) -> None:
        super().__init__(f"Flow is incomplete: {len(missing)} outstanding field(s)")
        self.missing = missing


class CollaboratorError(FlowError):
    """An external collaborator (submission, address, lookup) failed."""


class CsrfRejectedError(CollaboratorError):
    """CSRF validation rejected the request before any state mutation."""
