"""Household member endpoints - add and remove children."""

from fastapi import APIRouter, Depends

from dental_flow.engine import FlowEngine
from dental_flow.models.step import StepRedirect, StepTarget

from dental_flow_server.dependencies import get_csrf_token, get_flow_engine, get_session_id

router = APIRouter(tags=["children"])


@router.post("/flows/{flow_family}/{flow_id}/children", status_code=201)
async def add_child(
    flow_family: str,
    flow_id: str,
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> StepTarget | StepRedirect:
    """Append a member; the result points at its first step with ``child_id``."""
    return await engine.add_child(flow_family, flow_id, session_id, csrf_token=csrf_token)


@router.delete("/flows/{flow_family}/{flow_id}/children/{child_id}", status_code=204)
async def remove_child(
    flow_family: str,
    flow_id: str,
    child_id: str,
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> None:
    """Remove a member.  Unknown ids succeed without changing the flow."""
    await engine.remove_child(
        flow_family, flow_id, session_id, child_id, csrf_token=csrf_token,
    )
