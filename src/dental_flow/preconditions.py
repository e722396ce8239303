"""StepPreconditionEvaluator - may the user enter this step right now?

Checks run in a fixed order and the first failure wins:

  1. a submitted flow may only show the confirmation step, and the
     confirmation step needs a submission receipt
  2. steps limited to some applicant types send everyone else to the
     type step
  3. child-scoped steps need a member that exists in the flow
  4. the review step sends the user to the first outstanding field
  5. the step's own ``requires`` list, in declared order

A failed check is returned as a ``StepRedirect``, never raised.  Nothing is
cached: the evaluator is re-run on every read and every write.
"""

from __future__ import annotations

import logging
from datetime import date

from dental_flow.children import get_child
from dental_flow.evaluator import PredicateEvaluator, build_context
from dental_flow.graph import FlowGraphStore
from dental_flow.models.state import FlowState
from dental_flow.models.step import ReviewMissing, StepAllowed, StepCheck, StepRedirect
from dental_flow.review import ReviewValidator

logger = logging.getLogger(__name__)


class StepPreconditionEvaluator:
    """Decides between ``StepAllowed`` and ``StepRedirect`` for a step."""

    def __init__(self, graphs: FlowGraphStore, review: ReviewValidator | None = None) -> None:
        self._graphs = graphs
        self._review = review or ReviewValidator(graphs)
        self._evaluator = PredicateEvaluator()

    def can_enter(
        self,
        step_id: str,
        state: FlowState,
        child_id: str | None = None,
        *,
        today: date | None = None,
    ) -> StepCheck:
        """Evaluate every precondition of *step_id*.

        Raises ``KeyError`` for a step that is not in the flow's graph.
        """
        graph = self._graphs.get_graph(state.context)
        step = graph.step(step_id)
        today = today or date.today()

        # --- 1. Submission state ---
        if state.submission_info is not None:
            if step_id != graph.confirmation:
                return self._redirect(step_id, graph.confirmation, "submitted")
            return StepAllowed(step_id=step_id)
        if step_id == graph.confirmation:
            return self._redirect(step_id, graph.review.step, "not-submitted")

        # --- 2. Applicant type ---
        if step.applies_to and state.type_of_application not in step.applies_to:
            return self._redirect(step_id, graph.type_step, "applicant-type")

        # --- 3. Child scope ---
        child = None
        if step.scope == "child":
            child = get_child(state, child_id)
            if child is None:
                return self._redirect(step_id, graph.children_step or graph.entry, "unknown-child")
        else:
            child_id = None

        # --- 4. Review completeness ---
        if step_id == graph.review.step:
            result = self._review.validate_for_submission(state, today=today)
            if isinstance(result, ReviewMissing):
                first = result.first
                return self._redirect(step_id, first.step_id, "incomplete", first.child_id)

        # --- 5. Declared requirements ---
        ctx = build_context(state, child, today=today)
        for req in step.requires:
            if req.applies_to and state.type_of_application not in req.applies_to:
                continue
            if not self._evaluator.matches(req.when, ctx):
                target_is_child = graph.step(req.otherwise).scope == "child"
                return self._redirect(
                    step_id, req.otherwise, "precondition", child_id if target_is_child else None
                )

        return StepAllowed(step_id=step_id, child_id=child_id)

    @staticmethod
    def _redirect(
        from_step: str, to_step: str, reason: str, child_id: str | None = None
    ) -> StepRedirect:
        logger.debug("Precondition redirect %s -> %s (%s)", from_step, to_step, reason)
        return StepRedirect(step_id=to_step, child_id=child_id, reason=reason)
