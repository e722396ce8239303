"""Step endpoints - may a step be shown, and save its answers.

Both endpoints answer with a typed result the client dispatches on:

  - ``{"type": "allowed"}``  - render the step
  - ``{"type": "redirect"}`` - a precondition failed; go to ``step_id``
  - ``{"type": "next"}``     - answers saved; continue at ``step_id``

Child-scoped steps take the member's id as ``?child_id=``.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from dental_flow.engine import FlowEngine
from dental_flow.models.step import StepAllowed, StepRedirect, StepTarget

from dental_flow_server.dependencies import get_csrf_token, get_flow_engine, get_session_id

router = APIRouter(tags=["steps"])


class StepAnswers(BaseModel):
    """Body for POST /steps/{step_id}: whole sections keyed by field name."""
    sections: dict[str, Any] = Field(default_factory=dict)


@router.get("/flows/{flow_family}/{flow_id}/steps/{step_id}")
async def enter_step(
    flow_family: str,
    flow_id: str,
    step_id: str,
    child_id: Optional[str] = Query(None),
    session_id: str = Depends(get_session_id),
    engine: FlowEngine = Depends(get_flow_engine),
) -> StepAllowed | StepRedirect:
    return await engine.enter_step(
        flow_family, flow_id, session_id, step_id, child_id=child_id,
    )


@router.post("/flows/{flow_family}/{flow_id}/steps/{step_id}")
async def complete_step(
    flow_family: str,
    flow_id: str,
    step_id: str,
    body: StepAnswers,
    child_id: Optional[str] = Query(None),
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> StepTarget | StepRedirect:
    """Save the step's sections and return the next step.

    Returns 400 for invalid answers or sections the step does not own,
    404 for an unknown step and 409 for an unknown ``child_id``.
    """
    return await engine.complete_step(
        flow_family,
        flow_id,
        session_id,
        step_id,
        body.sections,
        child_id=child_id,
        csrf_token=csrf_token,
    )
