"""PredicateEvaluator - resolves step-graph predicates against a flow.

Predicates come from the YAML step graphs (``requires``, ``next``,
``clears`` and the review ``when`` lists).  Each predicate names a field of
the evaluation context by dotted path, an operator, and an expected value.

The evaluation context is the JSON dump of the ``FlowState`` plus derived
discriminators that are never stored:

  - **age_category**: from ``date_of_birth`` (children/youth/adults/seniors)
  - **has_partner**: from ``applicant_information.marital_status``
  - **children_count**: number of members in ``children``
  - **child**: the current member's dump plus its own ``age_category``,
    present only for child-scoped steps

A field that is absent (missing key or ``None``) satisfies only the
``absent`` operator.  Every other operator evaluates to False, so a
requirement on an unanswered upstream field fails and redirects instead of
reading the gap as a negative answer.
"""

from __future__ import annotations

import logging
import operator
from datetime import date
from typing import Any, Callable, Iterable

from dental_flow.dates import age_category_on
from dental_flow.models.graph import Predicate
from dental_flow.models.state import ChildState, FlowState

logger = logging.getLogger(__name__)

_ABSENT = object()


def build_context(
    state: FlowState,
    child: ChildState | None = None,
    *,
    today: date,
) -> dict[str, Any]:
    """Build the dict that predicates are evaluated against."""
    ctx = state.model_dump(mode="json")
    ctx["age_category"] = (
        age_category_on(state.date_of_birth, today).value
        if state.date_of_birth is not None
        else None
    )
    ctx["has_partner"] = (
        state.applicant_information.has_partner
        if state.applicant_information is not None
        else None
    )
    ctx["children_count"] = len(state.children)

    if child is not None:
        child_ctx = child.model_dump(mode="json")
        child_ctx["age_category"] = (
            age_category_on(child.information.date_of_birth, today).value
            if child.information is not None
            else None
        )
        ctx["child"] = child_ctx
    return ctx


def resolve(path: str, context: dict[str, Any]) -> Any:
    """Walk a dotted *path* through nested dicts; absent values yield a sentinel."""
    node: Any = context
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return _ABSENT
        node = node[part]
    return _ABSENT if node is None else node


class PredicateEvaluator:
    """Evaluates AND-ed predicate lists against an evaluation context."""

    def matches(self, predicates: Iterable[Predicate], context: dict[str, Any]) -> bool:
        """True if every predicate holds.  An empty list always matches."""
        return all(self.eval_predicate(pred, context) for pred in predicates)

    def eval_predicate(self, pred: Predicate, context: dict[str, Any]) -> bool:
        value = resolve(pred.field, context)
        if pred.op == "absent":
            return value is _ABSENT
        if value is _ABSENT:
            return False
        if pred.op == "present":
            return True
        return self._compare(pred.op, value, pred.value)

    @staticmethod
    def _compare(op: str, answer: Any, value: Any) -> bool:
        return _COMPARISONS[op](answer, value)


def _at_least(answer: Any, bound: Any) -> bool:
    # Answers arrive JSON-dumped, so counts may be strings.
    if isinstance(answer, bool):
        return False
    try:
        return float(answer) >= float(bound)
    except (TypeError, ValueError):
        return False


_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "in": lambda answer, choices: answer in choices,
    "not_in": lambda answer, choices: answer not in choices,
    "ge": _at_least,
}
