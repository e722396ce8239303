"""Review and submission endpoints."""

from fastapi import APIRouter, Depends

from dental_flow.engine import FlowEngine
from dental_flow.models.state import FlowState
from dental_flow.models.step import ReviewComplete, ReviewMissing

from dental_flow_server.dependencies import get_csrf_token, get_flow_engine, get_session_id

router = APIRouter(tags=["review"])


@router.get("/flows/{flow_family}/{flow_id}/review")
async def review_flow(
    flow_family: str,
    flow_id: str,
    session_id: str = Depends(get_session_id),
    engine: FlowEngine = Depends(get_flow_engine),
) -> ReviewComplete | ReviewMissing:
    """List the fields still needed before the flow can be submitted."""
    return await engine.review(flow_family, flow_id, session_id)


@router.post("/flows/{flow_family}/{flow_id}/submit")
async def submit_flow(
    flow_family: str,
    flow_id: str,
    session_id: str = Depends(get_session_id),
    csrf_token: str | None = Depends(get_csrf_token),
    engine: FlowEngine = Depends(get_flow_engine),
) -> FlowState:
    """Submit the application.

    Returns the flow with ``submission_info`` set.  422 lists outstanding
    fields; 502 means the benefit service failed and the call can be
    retried.
    """
    return await engine.submit(flow_family, flow_id, session_id, csrf_token=csrf_token)
