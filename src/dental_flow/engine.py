"""FlowEngine - the entry point for every flow operation.

Stateless engine pattern: each call loads the flow from the ``StateStore``,
computes, persists the new value through the store, and returns the result.
No flow state is kept in memory between calls, and no caller ever holds a
reference into persisted data.

Request sequence for a step save::

    CSRF check            (before anything is read or written)
    identifier -> key     (InvalidIdentifierError)
    store read            (FlowNotFoundError)
    expiry check          (FlowExpiredError, record evicted)
    precondition check    (StepRedirect returned, nothing written)
    collaborator lookup   (renewal identification only)
    merge + clears        (sections validated before merge)
    branching router      (StepTarget)
    store write           (stamps last_updated_on)

Any failure before the store write leaves the persisted flow unchanged.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from dental_flow import children as child_ops
from dental_flow import edit_mode
from dental_flow.audit import LoggingAuditEmitter
from dental_flow.constants import IMMUTABLE_FIELDS, STATE_TTL_MINUTES
from dental_flow.errors import (
    CollaboratorError,
    CsrfRejectedError,
    FlowExpiredError,
    FlowNotFoundError,
    IncompleteForSubmissionError,
    StaleChildReferenceError,
)
from dental_flow.evaluator import PredicateEvaluator, build_context
from dental_flow.graph import FlowGraphStore
from dental_flow.identifiers import context_for, derive_key, new_flow_id
from dental_flow.interfaces import Collaborators
from dental_flow.models.graph import StepDefinition
from dental_flow.models.state import FLOW_SECTION_FIELDS, Address, FlowState, SubmissionInfo
from dental_flow.models.step import (
    AddressCorrectionResult,
    Freshness,
    ReviewMissing,
    ReviewResult,
    StepCheck,
    StepOutcome,
    StepRedirect,
    StepTarget,
)
from dental_flow.preconditions import StepPreconditionEvaluator
from dental_flow.review import ReviewValidator
from dental_flow.router import BranchingRouter
from dental_flow.store import ExpiryGuard, StateStore

logger = logging.getLogger(__name__)

# Fields start_state() accepts as initial discriminators.
_INITIAL_FIELDS = frozenset(
    {"type_of_application", "input_model", "application_year", "client_application"}
)


class FlowEngine:
    """Orchestrates load / save / step / child / review / submit operations.

    Args:
        store: state store over a session backend
        graphs: a loaded :class:`FlowGraphStore`
        collaborators: optional external services
        ttl_minutes: idle minutes before a flow expires
    """

    def __init__(
        self,
        store: StateStore,
        graphs: FlowGraphStore,
        *,
        collaborators: Collaborators | None = None,
        ttl_minutes: int = STATE_TTL_MINUTES,
    ) -> None:
        self._store = store
        self._graphs = graphs
        self._collab = collaborators or Collaborators()
        self._audit = self._collab.audit or LoggingAuditEmitter()
        self._guard = ExpiryGuard(ttl_minutes, clock=store.clock)
        self._evaluator = PredicateEvaluator()
        self._review = ReviewValidator(graphs)
        self._preconditions = StepPreconditionEvaluator(graphs, self._review)
        self._router = BranchingRouter(graphs)

    @property
    def graphs(self) -> FlowGraphStore:
        return self._graphs

    def _today(self) -> date:
        return self._store.clock().date()

    # ==================================================================
    # Flow lifecycle
    # ==================================================================

    async def start_state(
        self,
        flow_family: str,
        session_id: str,
        initial: dict[str, Any] | None = None,
        *,
        csrf_token: str | None = None,
    ) -> FlowState:
        """Create and persist a fresh flow with a new id.

        *initial* may carry discriminators known up front (applicant type,
        input model, application year, a pre-matched client application).
        """
        await self._check_csrf(csrf_token, session_id)
        context = context_for(flow_family)
        initial = dict(initial or {})
        unknown = set(initial) - _INITIAL_FIELDS
        if unknown:
            raise ValueError(f"Not initial discriminators: {sorted(unknown)}")

        flow_id = new_flow_id()
        state = FlowState.model_validate(
            {
                **initial,
                "id": flow_id,
                "last_updated_on": self._store.clock(),
                "context": context,
            }
        )
        state = await self._store.set(session_id, derive_key(flow_family, flow_id), state)
        logger.info("Flow started: family=%s context=%s", flow_family, context)
        await self._audit.emit("flow-started", flow_family=flow_family, flow_id=flow_id)
        return state

    async def load_state(self, flow_family: str, raw_id: str, session_id: str) -> FlowState:
        """Validate the id, read the flow and enforce expiry.

        Raises ``InvalidIdentifierError``, ``FlowNotFoundError`` or
        ``FlowExpiredError``; callers send all three to the start-over page.
        """
        key = derive_key(flow_family, raw_id)
        state = await self._store.get(session_id, key)
        if state is None:
            raise FlowNotFoundError(f"Flow not found: family={flow_family}")

        if state.id != raw_id or state.context != context_for(flow_family):
            logger.warning("Flow record does not match its key; evicting (family=%s)", flow_family)
            await self._store.clear(session_id, key)
            raise FlowNotFoundError(f"Flow not found: family={flow_family}")

        if await self._guard.enforce(self._store, session_id, key, state) is Freshness.EXPIRED:
            raise FlowExpiredError(f"Flow expired: family={flow_family}")
        return state

    async def save_state(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        patch: dict[str, Any],
        *,
        remove: Iterable[str] = (),
        csrf_token: str | None = None,
    ) -> FlowState:
        """Merge *patch* onto the flow, drop the *remove* sections, persist.

        Sections are replaced whole; unrelated sections are untouched.
        """
        await self._check_csrf(csrf_token, session_id)
        state = await self.load_state(flow_family, raw_id, session_id)
        merged = self._merge(state, patch, remove)
        build_context(merged, today=self._today())
        return await self._persist(flow_family, session_id, merged)

    async def clear_state(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        *,
        csrf_token: str | None = None,
    ) -> None:
        await self._check_csrf(csrf_token, session_id)
        await self._store.clear(session_id, derive_key(flow_family, raw_id))
        logger.info("Flow cleared: family=%s", flow_family)
        await self._audit.emit("flow-cleared", flow_family=flow_family, flow_id=raw_id)

    # ==================================================================
    # Steps
    # ==================================================================

    async def enter_step(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        step_id: str,
        *,
        child_id: str | None = None,
    ) -> StepCheck:
        """Check whether *step_id* may be shown.

        An incomplete flow that reaches the review step is redirected to the
        first outstanding field and leaves edit mode.
        """
        state = await self.load_state(flow_family, raw_id, session_id)
        check = self._preconditions.can_enter(step_id, state, child_id, today=self._today())

        graph = self._graphs.get_graph(state.context)
        if (
            isinstance(check, StepRedirect)
            and step_id == graph.review.step
            and check.reason == "incomplete"
            and state.edit_mode
        ):
            await self._persist(flow_family, session_id, edit_mode.exit_edit_mode(state))
        return check

    async def complete_step(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        step_id: str,
        patch: dict[str, Any] | None = None,
        *,
        child_id: str | None = None,
        csrf_token: str | None = None,
    ) -> StepOutcome:
        """Save a step's answers and return where the user goes next.

        Returns a ``StepRedirect`` without writing anything when the step
        may not be entered.  Raises ``ValueError`` for answers to sections
        the step does not own, and ``StaleChildReferenceError`` for a child
        id that is not in the flow.
        """
        await self._check_csrf(csrf_token, session_id)
        state = await self.load_state(flow_family, raw_id, session_id)
        today = self._today()

        graph = self._graphs.get_graph(state.context)
        step = graph.step(step_id)
        if step.terminal or step_id == graph.review.step:
            raise ValueError(f"Step {step_id} does not accept answers")

        if step.scope == "child" and child_ops.get_child(state, child_id) is None:
            logger.warning("Step save rejected: child id not in flow (step=%s)", step_id)
            raise StaleChildReferenceError(str(child_id))

        check = self._preconditions.can_enter(step_id, state, child_id, today=today)
        if isinstance(check, StepRedirect):
            return check

        patch = dict(patch or {})
        undeclared = set(patch) - set(step.sections)
        if undeclared:
            raise ValueError(f"Step {step_id} does not own sections: {sorted(undeclared)}")

        if step.scope == "child":
            updated = child_ops.update_child(state, child_id, patch)
        else:
            updated = self._merge(state, patch)
            if step.lookup == "client_application":
                updated = await self._apply_client_lookup(updated)
        updated = self._apply_clears(step, updated, child_id, today)

        # Derived values (age categories) must be computable before persisting.
        target = self._router.next_step(step_id, updated, child_id, today=today)
        await self._persist(flow_family, session_id, updated)
        logger.debug("Step %s completed -> %s", step_id, target.step_id)
        return target

    # ==================================================================
    # Children
    # ==================================================================

    async def add_child(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        *,
        csrf_token: str | None = None,
    ) -> StepOutcome:
        """Append a member and return the first child step for it."""
        await self._check_csrf(csrf_token, session_id)
        state = await self.load_state(flow_family, raw_id, session_id)
        graph = self._graphs.get_graph(state.context)
        if graph.children_step is None:
            raise ValueError(f"{graph.context} flows have no children")

        check = self._preconditions.can_enter(graph.children_step, state, today=self._today())
        if isinstance(check, StepRedirect):
            return check

        updated, child = child_ops.add_child(state)
        await self._persist(flow_family, session_id, updated)
        first_child_step = next(s.id for s in graph.steps if s.scope == "child")
        return StepTarget(step_id=first_child_step, child_id=child.id)

    async def remove_child(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        child_id: str,
        *,
        csrf_token: str | None = None,
    ) -> FlowState:
        """Remove a member.  Removing an unknown id is a no-op."""
        await self._check_csrf(csrf_token, session_id)
        state = await self.load_state(flow_family, raw_id, session_id)
        updated = child_ops.remove_child(state, child_id)
        if updated is state:
            return state
        return await self._persist(flow_family, session_id, updated)

    # ==================================================================
    # Edit mode
    # ==================================================================

    async def enter_edit_mode(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        return_step_id: str | None = None,
        *,
        csrf_token: str | None = None,
    ) -> FlowState:
        await self._check_csrf(csrf_token, session_id)
        state = await self.load_state(flow_family, raw_id, session_id)
        if return_step_id is not None:
            self._graphs.get_step(state.context, return_step_id)
        return await self._persist(
            flow_family, session_id, edit_mode.enter_edit_mode(state, return_step_id)
        )

    async def exit_edit_mode(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        *,
        csrf_token: str | None = None,
    ) -> FlowState:
        await self._check_csrf(csrf_token, session_id)
        state = await self.load_state(flow_family, raw_id, session_id)
        return await self._persist(flow_family, session_id, edit_mode.exit_edit_mode(state))

    # ==================================================================
    # Review & submission
    # ==================================================================

    async def review(self, flow_family: str, raw_id: str, session_id: str) -> ReviewResult:
        state = await self.load_state(flow_family, raw_id, session_id)
        return self._review.validate_for_submission(state, today=self._today())

    async def submit(
        self,
        flow_family: str,
        raw_id: str,
        session_id: str,
        *,
        csrf_token: str | None = None,
    ) -> FlowState:
        """Submit a complete flow and record the confirmation receipt.

        Raises ``IncompleteForSubmissionError`` (nothing submitted) or
        ``CollaboratorError`` (submission failed).  In both cases the
        persisted flow is unchanged and the call can be retried.  A flow
        that was already submitted is returned as is.
        """
        await self._check_csrf(csrf_token, session_id)
        state = await self.load_state(flow_family, raw_id, session_id)
        if state.submission_info is not None:
            return state

        result = self._review.validate_for_submission(state, today=self._today())
        if isinstance(result, ReviewMissing):
            raise IncompleteForSubmissionError(result.fields)

        submitter = self._collab.submitter
        if submitter is None:
            raise CollaboratorError("No application submitter configured")
        try:
            confirmation_code = await submitter.submit(state)
        except Exception as exc:
            logger.warning("Benefit submission failed: %s", type(exc).__name__)
            raise CollaboratorError("Benefit submission failed") from exc

        submitted = edit_mode.exit_edit_mode(state).model_copy(
            update={
                "submission_info": SubmissionInfo(
                    confirmation_code=confirmation_code,
                    submitted_on=self._store.clock(),
                )
            }
        )
        submitted = await self._persist(flow_family, session_id, submitted)
        logger.info("Application submitted: family=%s", flow_family)
        await self._audit.emit(
            "application-submitted",
            flow_family=flow_family,
            flow_id=state.id,
            application_flow=state.application_flow,
        )
        return submitted

    # ==================================================================
    # Collaborator pass-through
    # ==================================================================

    async def correct_address(self, address: Address | dict[str, Any]) -> AddressCorrectionResult:
        corrector = self._collab.address_corrector
        if corrector is None:
            raise CollaboratorError("No address corrector configured")
        address = Address.model_validate(address)
        try:
            return await corrector.correct(address)
        except Exception as exc:
            logger.warning("Address correction failed: %s", type(exc).__name__)
            raise CollaboratorError("Address correction failed") from exc

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _check_csrf(self, token: str | None, session_id: str) -> None:
        validator = self._collab.csrf
        if validator is None:
            return
        try:
            allowed = await validator.validate(token, session_id)
        except Exception as exc:
            raise CollaboratorError("CSRF validation failed") from exc
        if not allowed:
            logger.warning("CSRF token rejected")
            raise CsrfRejectedError("CSRF token rejected")

    async def _persist(self, flow_family: str, session_id: str, state: FlowState) -> FlowState:
        return await self._store.set(session_id, derive_key(flow_family, state.id), state)

    @staticmethod
    def _merge(
        state: FlowState, patch: dict[str, Any], remove: Iterable[str] = ()
    ) -> FlowState:
        """Validate and merge whole sections onto a copy of *state*."""
        remove = list(remove)
        names = set(patch) | set(remove)
        immutable = names & IMMUTABLE_FIELDS
        if immutable:
            raise ValueError(f"Fields cannot be changed through a save: {sorted(immutable)}")
        unknown = names - FLOW_SECTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown flow sections: {sorted(unknown)}")

        data = state.model_dump(exclude={"application_flow"})
        data.update(patch)
        for name in remove:
            data[name] = None
        return FlowState.model_validate(data)

    def _apply_clears(
        self,
        step: StepDefinition,
        state: FlowState,
        child_id: str | None,
        today: date,
    ) -> FlowState:
        """Drop the sections a step's ``clears`` rules make obsolete."""
        if not step.clears:
            return state
        child = child_ops.get_child(state, child_id) if step.scope == "child" else None
        ctx = build_context(state, child, today=today)
        fields = [
            name
            for rule in step.clears
            if self._evaluator.matches(rule.when, ctx)
            for name in rule.fields
        ]
        if not fields:
            return state
        if step.scope == "child":
            return child_ops.update_child(state, child_id, {}, remove=fields)
        return self._merge(state, {}, remove=fields)

    async def _apply_client_lookup(self, state: FlowState) -> FlowState:
        """Match the applicant against existing client applications.

        A match stores the record and switches to the simplified input
        model; no match removes both.
        """
        finder = self._collab.client_applications
        if finder is None:
            raise CollaboratorError("No client-application finder configured")
        basic_info = state.model_dump(
            mode="json", include={"applicant_information", "date_of_birth"}
        )
        try:
            record = await finder.find(basic_info)
        except Exception as exc:
            logger.warning("Client application lookup failed: %s", type(exc).__name__)
            raise CollaboratorError("Client application lookup failed") from exc

        if record is None:
            logger.info("Renewal lookup: no client application found")
            return self._merge(state, {}, remove=("client_application", "input_model"))
        return self._merge(state, {"client_application": record, "input_model": "simplified"})
