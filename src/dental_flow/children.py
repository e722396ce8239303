"""Child collection manager - the sole mutator of ``FlowState.children``.

Every function takes a ``FlowState`` value and returns a new one; the input
is never modified.  Children keep insertion order and ids are unique within
a flow.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from dental_flow.errors import StaleChildReferenceError
from dental_flow.identifiers import new_flow_id
from dental_flow.models.state import CHILD_SECTION_FIELDS, ChildState, FlowState

logger = logging.getLogger(__name__)

# Sections reported by section_completeness(), in display order.
CHILD_SECTIONS: tuple[str, ...] = (
    "information",
    "dental_insurance",
    "has_federal_provincial_territorial_benefits",
    "dental_benefits",
    "demographic_survey",
)


def get_child(state: FlowState, child_id: str | None) -> ChildState | None:
    if child_id is None:
        return None
    for child in state.children:
        if child.id == child_id:
            return child
    return None


def add_child(state: FlowState) -> tuple[FlowState, ChildState]:
    """Append a member with a fresh id and no sections."""
    taken = {c.id for c in state.children}
    child_id = new_flow_id()
    while child_id in taken:
        child_id = new_flow_id()
    child = ChildState(id=child_id)
    return state.model_copy(update={"children": [*state.children, child]}), child


def remove_child(state: FlowState, child_id: str) -> FlowState:
    """Drop the member with *child_id*.  Unknown ids leave the state unchanged."""
    remaining = [c for c in state.children if c.id != child_id]
    if len(remaining) == len(state.children):
        return state
    return state.model_copy(update={"children": remaining})


def update_child(
    state: FlowState,
    child_id: str,
    patch: dict[str, Any],
    *,
    remove: Iterable[str] = (),
) -> FlowState:
    """Merge validated sections into exactly one member.

    Raises ``StaleChildReferenceError`` when no member has *child_id* and
    ``ValueError`` when the patch names something that is not a child section.
    """
    unknown = (set(patch) | set(remove)) - CHILD_SECTION_FIELDS
    if unknown:
        raise ValueError(f"Not child sections: {sorted(unknown)}")

    for index, child in enumerate(state.children):
        if child.id == child_id:
            break
    else:
        logger.warning("Child update rejected: child id not in flow")
        raise StaleChildReferenceError(child_id)

    data = child.model_dump(exclude={"is_new"})
    data.update(patch)
    for name in remove:
        data.pop(name, None)
    updated = ChildState.model_validate(data)

    children = list(state.children)
    children[index] = updated
    return state.model_copy(update={"children": children})


def section_completeness(child: ChildState) -> dict[str, bool]:
    """Map each child section to whether it has been answered."""
    return {name: getattr(child, name) is not None for name in CHILD_SECTIONS}
