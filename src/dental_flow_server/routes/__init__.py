"""Route registration - mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from dental_flow_server.routes.children import router as children_router
from dental_flow_server.routes.flows import router as flows_router
from dental_flow_server.routes.review import router as review_router
from dental_flow_server.routes.steps import router as steps_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(flows_router, prefix=API_PREFIX)
    app.include_router(steps_router, prefix=API_PREFIX)
    app.include_router(children_router, prefix=API_PREFIX)
    app.include_router(review_router, prefix=API_PREFIX)
