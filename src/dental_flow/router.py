"""BranchingRouter - picks the step that follows a completed one.

Decision order (first hit wins):

  1. edit mode on and the completed step is editable -> return step;
     a child still missing answers keeps walking its own sub-flow
  2. ``terminal`` rules   (ineligible / early-exit pages)
  3. ``age`` rules        (age category derived from date of birth)
  4. ``applicant_type`` rules
  5. ``default`` rules

Within one priority, rules keep their YAML order.  A step whose rules all
fail is a graph defect and raises rather than guessing a destination.
"""

from __future__ import annotations

import logging
from datetime import date

from dental_flow.children import get_child
from dental_flow.constants import BRANCH_PRIORITY_ORDER
from dental_flow.edit_mode import edit_mode_target
from dental_flow.errors import StaleChildReferenceError
from dental_flow.evaluator import PredicateEvaluator, build_context
from dental_flow.graph import FlowGraphStore
from dental_flow.models.state import FlowState
from dental_flow.models.step import StepTarget

logger = logging.getLogger(__name__)


class BranchingRouter:
    """Computes ``next_step`` from the step graph and accumulated answers."""

    def __init__(self, graphs: FlowGraphStore) -> None:
        self._graphs = graphs
        self._evaluator = PredicateEvaluator()

    def next_step(
        self,
        completed_step_id: str,
        state: FlowState,
        child_id: str | None = None,
        *,
        today: date | None = None,
    ) -> StepTarget:
        graph = self._graphs.get_graph(state.context)
        step = graph.step(completed_step_id)
        if step.terminal:
            raise ValueError(f"Step {completed_step_id} is terminal and has no next step")

        child = None
        if step.scope == "child":
            child = get_child(state, child_id)
            if child is None:
                raise StaleChildReferenceError(str(child_id))

        if state.edit_mode and step.editable and (child is None or not child.is_new):
            target = edit_mode_target(state, graph)
            logger.debug("Edit mode: %s -> %s", completed_step_id, target)
            return StepTarget(step_id=target)

        ctx = build_context(state, child, today=today or date.today())
        ranked = sorted(
            enumerate(step.next),
            key=lambda pair: (BRANCH_PRIORITY_ORDER.index(pair[1].priority), pair[0]),
        )
        for _, rule in ranked:
            if self._evaluator.matches(rule.when, ctx):
                target = graph.step(rule.then)
                logger.debug(
                    "Route %s -> %s (%s)", completed_step_id, rule.then, rule.priority
                )
                return StepTarget(
                    step_id=rule.then,
                    child_id=child_id if target.scope == "child" else None,
                )

        raise ValueError(
            f"No branch rule matched after step {completed_step_id} "
            f"in {graph.context} graph"
        )
