"""Edit-mode controller.

Edit mode is entered from the review page.  While it is on, saving any
editable step returns to the review page (or the recorded return step)
instead of continuing the linear flow.  The router consults it before any
branch rule.
"""

from __future__ import annotations

from dental_flow.models.graph import FlowGraph
from dental_flow.models.state import FlowState


def enter_edit_mode(state: FlowState, return_step_id: str | None = None) -> FlowState:
    return state.model_copy(
        update={"edit_mode": True, "edit_mode_return_step": return_step_id}
    )


def exit_edit_mode(state: FlowState) -> FlowState:
    if not state.edit_mode and state.edit_mode_return_step is None:
        return state
    return state.model_copy(update={"edit_mode": False, "edit_mode_return_step": None})


def edit_mode_target(state: FlowState, graph: FlowGraph) -> str:
    """Step a save returns to while edit mode is on."""
    return state.edit_mode_return_step or graph.review.step
