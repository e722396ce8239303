"""Flow lifecycle endpoints - start, load, clear, edit mode.

``flow_family`` is one of ``apply``, ``protected-apply``, ``renew`` and
``protected-renew``.  Unknown families, malformed ids and missing or
expired flows all redirect to the start-over page.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dental_flow.engine import FlowEngine
from dental_flow.models.state import ApplicationYear, FlowState, InputModel, TypeOfApplication

from dental_flow_server.dependencies import get_csrf_token, get_flow_engine, get_session_id

router = APIRouter(tags=["flows"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class StartFlowRequest(BaseModel):
    """Body for POST /flows/{flow_family}.  Every field is optional."""
    type_of_application: Optional[TypeOfApplication] = None
    input_model: Optional[InputModel] = None
    application_year: Optional[ApplicationYear] = None
    client_application: Optional[dict[str, Any]] = None


class EditModeRequest(BaseModel):
    return_step_id: Optional[str] = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/flows/{flow_family}", status_code=201)
async def start_flow(
    flow_family: str,
    body: StartFlowRequest | None = None,
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> FlowState:
    """Create a new flow with a fresh id."""
    initial = body.model_dump(exclude_none=True) if body is not None else {}
    return await engine.start_state(
        flow_family, session_id, initial, csrf_token=csrf_token,
    )


@router.get("/flows/{flow_family}/{flow_id}")
async def get_flow(
    flow_family: str,
    flow_id: str,
    session_id: str = Depends(get_session_id),
    engine: FlowEngine = Depends(get_flow_engine),
) -> FlowState:
    return await engine.load_state(flow_family, flow_id, session_id)


@router.delete("/flows/{flow_family}/{flow_id}", status_code=204)
async def clear_flow(
    flow_family: str,
    flow_id: str,
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> None:
    """Drop the flow, e.g. after the confirmation page has been shown."""
    await engine.clear_state(flow_family, flow_id, session_id, csrf_token=csrf_token)


@router.post("/flows/{flow_family}/{flow_id}/edit-mode")
async def enter_edit_mode(
    flow_family: str,
    flow_id: str,
    body: EditModeRequest | None = None,
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> FlowState:
    """Enter edit mode: editable steps return to the review page when saved."""
    return await engine.enter_edit_mode(
        flow_family,
        flow_id,
        session_id,
        body.return_step_id if body is not None else None,
        csrf_token=csrf_token,
    )


@router.delete("/flows/{flow_family}/{flow_id}/edit-mode")
async def exit_edit_mode(
    flow_family: str,
    flow_id: str,
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> FlowState:
    return await engine.exit_edit_mode(
        flow_family, flow_id, session_id, csrf_token=csrf_token,
    )
