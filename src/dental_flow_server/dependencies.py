"""FastAPI dependency injection - engine singleton, session identity, CSRF token."""

import hmac

from fastapi import Header, HTTPException, Request

from dental_flow.engine import FlowEngine


def get_flow_engine(request: Request) -> FlowEngine:
    """Return the FlowEngine singleton from ``app.state``."""
    return request.app.state.flow_engine


async def get_session_id(
    request: Request,
    x_session_id: str | None = Header(None, alias="X-Session-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Extract the caller's session identity from ``X-Session-ID``.

    Flows are stored under this identity, so one session never sees
    another's flows.  Returns 401 if the header is missing.

    When ``TRUSTED_PROXY_SECRET`` is configured, the request must also
    carry a matching ``X-Proxy-Secret``.
    """
    if not x_session_id:
        raise HTTPException(status_code=401, detail="X-Session-ID header is required")

    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(status_code=403, detail="X-Proxy-Secret header is required")
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    return x_session_id


async def get_csrf_token(
    x_csrf_token: str | None = Header(None, alias="X-CSRF-Token"),
) -> str | None:
    return x_csrf_token
