"""Global exception handlers - map SDK exceptions to HTTP responses.

Routes only cover the happy path; every domain error is translated once
here.  Details (ids, field names) are logged server-side and the client
receives a safe message, except for the list of outstanding review fields,
which the user needs in order to finish the application.

Invalid, missing and expired flows share one recovery: a ``303`` to the
start-over page for the flow family, with no detail.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse

from dental_flow.errors import (
    CollaboratorError,
    CsrfRejectedError,
    FlowError,
    IncompleteForSubmissionError,
    StaleChildReferenceError,
)

logger = logging.getLogger(__name__)


async def start_over_handler(request: Request, exc: FlowError) -> RedirectResponse:
    """InvalidIdentifierError / FlowNotFoundError / FlowExpiredError → 303."""
    family = request.path_params.get("flow_family")
    logger.info("Start over (%s) family=%s", type(exc).__name__, family)
    url = request.app.state.settings.start_over_for(family)
    return RedirectResponse(url=url, status_code=303)


async def stale_child_handler(
    request: Request, exc: StaleChildReferenceError
) -> JSONResponse:
    logger.warning("Stale child reference at %s", request.url.path)
    return JSONResponse(status_code=409, content={"detail": "Child not found in flow"})


async def incomplete_handler(
    request: Request, exc: IncompleteForSubmissionError
) -> JSONResponse:
    """Return the outstanding fields so the client can route the user."""
    logger.info("Submission rejected: %d outstanding field(s)", len(exc.missing))
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Application is incomplete",
            "missing": [m.model_dump() for m in exc.missing],
        },
    )


async def csrf_handler(request: Request, exc: CsrfRejectedError) -> JSONResponse:
    logger.warning("CSRF rejected at %s", request.url.path)
    return JSONResponse(status_code=403, content={"detail": "Invalid CSRF token"})


async def collaborator_handler(request: Request, exc: CollaboratorError) -> JSONResponse:
    logger.warning("Collaborator failure at %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502, content={"detail": "Upstream service unavailable"}
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Invalid answers, undeclared sections, steps that take no answers → 400."""
    logger.warning("ValueError at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Invalid request"})


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Unknown step id → 404."""
    logger.warning("KeyError at %s: %s", request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all - log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
