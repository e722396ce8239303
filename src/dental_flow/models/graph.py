"""Step-graph models - the typed form of ``graphs/*.yaml``.

One graph per flow context (intake, renewal).  Each step declares:

  - ``applies_to``: applicant types that may reach it (empty = all)
  - ``requires``:   ordered prerequisite checks, each with a redirect target
  - ``sections``:   the state fields its patch may write
  - ``clears``:     fields removed after the merge when a condition holds
  - ``next``:       branch rules, each tagged with a priority category

Predicates reference fields of the evaluation context by dotted path (see
:func:`dental_flow.evaluator.build_context`).  Child-scoped steps read the
current member under ``child.``.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from dental_flow.models.state import TypeOfApplication

PredicateOp = Literal["present", "absent", "eq", "ne", "in", "not_in", "ge"]

BranchPriority = Literal["terminal", "age", "applicant_type", "default"]


class Predicate(BaseModel):
    """A single condition: ``{field, op, value}``."""

    field: str
    op: PredicateOp
    value: Any = None

    @model_validator(mode="after")
    def _check_value(self) -> "Predicate":
        if self.op in ("in", "not_in") and not isinstance(self.value, list):
            raise ValueError(f"{self.field}: {self.op} needs a list value")
        if self.op == "ge" and (
            isinstance(self.value, bool) or not isinstance(self.value, (int, float))
        ):
            raise ValueError(f"{self.field}: ge needs a numeric value")
        return self


class Requirement(BaseModel):
    """All ``when`` predicates must hold, else redirect to ``otherwise``.

    A non-empty ``applies_to`` limits the check to those applicant types.
    """

    when: List[Predicate]
    otherwise: str
    applies_to: List[TypeOfApplication] = Field(default_factory=list)


class NextRule(BaseModel):
    """Branch rule: if every ``when`` predicate holds, continue at ``then``."""

    priority: BranchPriority = "default"
    when: List[Predicate] = Field(default_factory=list)
    then: str


class ClearRule(BaseModel):
    """Remove ``fields`` from the merged state when every ``when`` holds."""

    fields: List[str]
    when: List[Predicate] = Field(default_factory=list)


class StepDefinition(BaseModel):
    id: str
    scope: Literal["flow", "child"] = "flow"
    applies_to: List[TypeOfApplication] = Field(default_factory=list)
    requires: List[Requirement] = Field(default_factory=list)
    sections: List[str] = Field(default_factory=list)
    clears: List[ClearRule] = Field(default_factory=list)
    next: List[NextRule] = Field(default_factory=list)
    # Reachable from the review page; saves return there in edit mode.
    editable: bool = False
    # No further step: informational or ineligible end pages.
    terminal: bool = False
    # Collaborator consulted before the patch is merged.
    lookup: Optional[Literal["client_application"]] = None


class RequiredField(BaseModel):
    """A field the review validator insists on before submission.

    When ``applies_to`` and every ``when`` predicate hold, the field must be
    present and every ``check`` predicate must pass.  A failing check on an
    absent field is reported as missing, on a present one as inconsistent.
    """

    field: str
    step: str
    applies_to: List[TypeOfApplication] = Field(default_factory=list)
    when: List[Predicate] = Field(default_factory=list)
    check: List[Predicate] = Field(default_factory=list)


class ReviewDefinition(BaseModel):
    step: str
    required: List[RequiredField] = Field(default_factory=list)
    child_required: List[RequiredField] = Field(default_factory=list)
    # Applicant types that must list at least one child.
    children_applies_to: List[TypeOfApplication] = Field(default_factory=list)


class FlowGraph(BaseModel):
    """A complete step graph for one flow context."""

    context: Literal["intake", "renewal"]
    entry: str
    type_step: str
    children_step: Optional[str] = None
    confirmation: str
    review: ReviewDefinition
    steps: List[StepDefinition]

    _by_id: dict[str, StepDefinition] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _chk(self):
        by_id: dict[str, StepDefinition] = {}
        for step in self.steps:
            if step.id in by_id:
                raise ValueError(f"duplicate step id: {step.id}")
            by_id[step.id] = step

        referenced = {self.entry, self.type_step, self.confirmation, self.review.step}
        if self.children_step is not None:
            referenced.add(self.children_step)
        for step in self.steps:
            referenced.update(r.otherwise for r in step.requires)
            referenced.update(r.then for r in step.next)
            if not step.terminal and not step.next and step.id != self.review.step:
                raise ValueError(f"step {step.id} has no next rules and is not terminal")
        for item in [*self.review.required, *self.review.child_required]:
            referenced.add(item.step)

        unknown = sorted(referenced - by_id.keys())
        if unknown:
            raise ValueError(f"{self.context} graph references unknown steps: {unknown}")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._by_id = {step.id: step for step in self.steps}

    def step(self, step_id: str) -> StepDefinition:
        """Look up a step by id.  Raises ``KeyError`` for unknown ids."""
        try:
            return self._by_id[step_id]
        except KeyError:
            raise KeyError(f"Unknown step in {self.context} graph: {step_id}") from None

    def has_step(self, step_id: str) -> bool:
        return step_id in self._by_id
