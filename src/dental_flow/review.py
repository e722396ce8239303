"""ReviewValidator - completeness check before submission.

Walks the ``review`` block of the flow's step graph:

  1. every top-level required field (filtered by applicant type and ``when``)
  2. at least one child for applicant types that apply for children
  3. every required child field, per child
  4. social insurance numbers unique across applicant, partner and children

Everything outstanding is reported, each item naming the step that fixes
it, so the caller can send the user back instead of failing silently.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from dental_flow.evaluator import PredicateEvaluator, build_context
from dental_flow.graph import FlowGraphStore
from dental_flow.models.graph import Predicate, RequiredField
from dental_flow.models.state import FlowState
from dental_flow.models.step import MissingField, ReviewComplete, ReviewMissing, ReviewResult

logger = logging.getLogger(__name__)

_PARTNER_STEP = "partner-information"
_CHILD_INFORMATION_STEP = "child-information"


class ReviewValidator:
    """Checks a flow against its graph's review requirements."""

    def __init__(self, graphs: FlowGraphStore) -> None:
        self._graphs = graphs
        self._evaluator = PredicateEvaluator()

    def validate_for_submission(
        self, state: FlowState, *, today: date | None = None
    ) -> ReviewResult:
        graph = self._graphs.get_graph(state.context)
        today = today or date.today()
        applicant_type = state.type_of_application
        missing: list[MissingField] = []

        ctx = build_context(state, today=today)
        for item in graph.review.required:
            reason = self._check(item, item.field, ctx, applicant_type)
            if reason is not None:
                missing.append(MissingField(field=item.field, step_id=item.step, reason=reason))

        if applicant_type in graph.review.children_applies_to:
            if not state.children:
                missing.append(
                    MissingField(field="children", step_id=graph.children_step or graph.review.step)
                )
            for child in state.children:
                child_ctx = build_context(state, child, today=today)
                for item in graph.review.child_required:
                    reason = self._check(item, f"child.{item.field}", child_ctx, applicant_type)
                    if reason is not None:
                        missing.append(
                            MissingField(
                                field=f"children[{child.id}].{item.field}",
                                step_id=item.step,
                                child_id=child.id,
                                reason=reason,
                            )
                        )

        missing.extend(self._sin_conflicts(state))

        # Several requirements can point at the same gap.
        unique: list[MissingField] = []
        seen: set[tuple[str, str, str | None]] = set()
        for item in missing:
            marker = (item.field, item.step_id, item.child_id)
            if marker not in seen:
                seen.add(marker)
                unique.append(item)

        if unique:
            logger.debug("Review incomplete: %d outstanding", len(unique))
            return ReviewMissing(fields=unique)
        return ReviewComplete()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check(
        self,
        item: RequiredField,
        path: str,
        ctx: dict[str, Any],
        applicant_type: str | None,
    ) -> str | None:
        """Return ``"missing"`` / ``"inconsistent"`` or None when satisfied."""
        if item.applies_to and applicant_type not in item.applies_to:
            return None
        if not self._evaluator.matches(item.when, ctx):
            return None

        present = self._evaluator.eval_predicate(Predicate(field=path, op="present"), ctx)
        if item.check:
            if self._evaluator.matches(item.check, ctx):
                return None
            return "inconsistent" if present else "missing"
        return None if present else "missing"

    def _sin_conflicts(self, state: FlowState) -> list[MissingField]:
        """Report every SIN already claimed by an earlier person in the flow."""
        conflicts: list[MissingField] = []
        claimed: set[str] = set()

        if state.applicant_information is not None:
            claimed.add(state.applicant_information.social_insurance_number)

        if state.partner_information is not None:
            sin = state.partner_information.social_insurance_number
            if sin in claimed:
                conflicts.append(
                    MissingField(
                        field="partner_information.social_insurance_number",
                        step_id=_PARTNER_STEP,
                        reason="inconsistent",
                    )
                )
            claimed.add(sin)

        for child in state.children:
            if child.information is None or child.information.social_insurance_number is None:
                continue
            sin = child.information.social_insurance_number
            if sin in claimed:
                conflicts.append(
                    MissingField(
                        field=f"children[{child.id}].information.social_insurance_number",
                        step_id=_CHILD_INFORMATION_STEP,
                        child_id=child.id,
                        reason="inconsistent",
                    )
                )
            claimed.add(sin)
        return conflicts
