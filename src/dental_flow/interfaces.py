"""Abstract interfaces for the engine's external collaborators.

These ABCs define the contract that external implementations must fulfil.
The SDK ships only the in-process session backends (``backends.py``) and a
logging audit sink (``audit.py``); remote services live elsewhere.

Typical integration::

    engine = FlowEngine(
        StateStore(MemorySessionBackend()),
        graphs,
        collaborators=Collaborators(
            csrf=MyCsrfValidator(...),
            client_applications=MyClientApplicationFinder(...),
            submitter=MyBenefitSubmitter(...),
        ),
    )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from dental_flow.models.state import Address, FlowState
from dental_flow.models.step import AddressCorrectionResult


class SessionBackend(ABC):
    """Session-keyed storage of JSON-compatible records.

    Records are addressed by the inbound request's session identity plus an
    opaque key.  Implementations must not hand out references to their
    internal storage: ``get`` returns a copy.
    """

    @abstractmethod
    async def get(self, session_id: str, key: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def set(self, session_id: str, key: str, value: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, session_id: str, key: str) -> None:
        """Remove a record.  Deleting a missing record is not an error."""
        ...


class CsrfValidator(ABC):
    """Checks a submitted CSRF token against the caller's session."""

    @abstractmethod
    async def validate(self, token: str | None, session_id: str) -> bool:
        ...


class AddressCorrector(ABC):
    """Remote address validation / correction service."""

    @abstractmethod
    async def correct(self, address: Address) -> AddressCorrectionResult:
        ...


class ClientApplicationFinder(ABC):
    """Looks up an existing client application for a renewal.

    ``basic_info`` carries ``applicant_information`` and ``date_of_birth``
    from the identification step.  Returns the record, or None when the
    applicant is not a current client.
    """

    @abstractmethod
    async def find(self, basic_info: dict[str, Any]) -> dict[str, Any] | None:
        ...


class ApplicationSubmitter(ABC):
    """Final benefit-application submission.  Returns a confirmation code."""

    @abstractmethod
    async def submit(self, state: FlowState) -> str:
        ...


class AuditEmitter(ABC):
    """Receives flow lifecycle events (started, submitted, cleared...)."""

    @abstractmethod
    async def emit(self, event: str, **data: Any) -> None:
        ...


@dataclass
class Collaborators:
    """Bundle of optional collaborators injected into ``FlowEngine``.

    A None collaborator means the corresponding operation is unavailable;
    CSRF checks are skipped when ``csrf`` is None.
    """

    csrf: CsrfValidator | None = None
    address_corrector: AddressCorrector | None = None
    client_applications: ClientApplicationFinder | None = None
    submitter: ApplicationSubmitter | None = None
    audit: AuditEmitter | None = None
