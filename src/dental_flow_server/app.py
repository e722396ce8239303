"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the step graphs and builds the FlowEngine once
  - CORS middleware
  - Global exception handlers (SDK errors → 303/400/403/404/409/422/502)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``dental-flow-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from dental_flow.backends import FileSessionBackend, MemorySessionBackend
from dental_flow.engine import FlowEngine
from dental_flow.errors import (
    CollaboratorError,
    CsrfRejectedError,
    FlowNotFoundError,
    IncompleteForSubmissionError,
    InvalidIdentifierError,
    StaleChildReferenceError,
)
from dental_flow.graph import FlowGraphStore
from dental_flow.interfaces import Collaborators, SessionBackend
from dental_flow.store import StateStore

from dental_flow_server.config import ServerSettings, load_settings
from dental_flow_server.csrf import HmacCsrfValidator
from dental_flow_server.errors import (
    collaborator_handler,
    csrf_handler,
    generic_error_handler,
    incomplete_handler,
    key_error_handler,
    stale_child_handler,
    start_over_handler,
    value_error_handler,
)
from dental_flow_server.routes import register_routes

logger = logging.getLogger(__name__)


def build_backend(settings: ServerSettings) -> SessionBackend:
    """Instantiate the session backend named by ``settings.session_backend``."""
    if settings.session_backend == "memory":
        return MemorySessionBackend()
    if settings.session_backend == "file":
        return FileSessionBackend(settings.session_file_dir)
    if settings.session_backend == "database":
        # Lazy import so the memory/file backends never load DB machinery
        from dental_flow_db.backend import DatabaseSessionBackend

        return DatabaseSessionBackend()
    raise ValueError(f"Unknown session backend: {settings.session_backend!r}")


# ------------------------------------------------------------------
# Lifespan - runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Load the YAML step graphs into a ``FlowGraphStore``
      2. Build the session backend and ``FlowEngine``
      3. Stash them on ``app.state`` for dependency injection

    Shutdown:
      1. Dispose the database engine's pool (database backend only)
    """
    settings: ServerSettings = app.state.settings

    graphs = FlowGraphStore(graph_dir=settings.graph_dir)
    graphs.load()
    logger.info("FlowGraphStore loaded: %s", ", ".join(sorted(graphs.graphs)))

    collaborators: Collaborators = app.state.collaborators
    if collaborators.csrf is None and settings.csrf_secret:
        collaborators = replace(collaborators, csrf=HmacCsrfValidator(settings.csrf_secret))

    backend = build_backend(settings)
    logger.info("Session backend: %s", settings.session_backend)

    app.state.graphs = graphs
    app.state.flow_engine = FlowEngine(
        StateStore(backend),
        graphs,
        collaborators=collaborators,
        ttl_minutes=settings.state_ttl_minutes,
    )

    yield

    if settings.session_backend == "database":
        from dental_flow_db.engine import dispose_engine

        await dispose_engine()
        logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(
    settings: ServerSettings | None = None,
    collaborators: Collaborators | None = None,
) -> FastAPI:
    """Build and return the configured FastAPI application.

    *collaborators* carries the deployment's remote services (submission,
    address correction, client lookup, audit).  Without a submitter,
    ``/submit`` answers 502.
    """
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Dental Flow API Server",
        description="REST API for dental benefit application and renewal flows",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.collaborators = collaborators or Collaborators()

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers (most specific class wins) ---
    app.add_exception_handler(InvalidIdentifierError, start_over_handler)
    app.add_exception_handler(FlowNotFoundError, start_over_handler)
    app.add_exception_handler(StaleChildReferenceError, stale_child_handler)
    app.add_exception_handler(IncompleteForSubmissionError, incomplete_handler)
    app.add_exception_handler(CsrfRejectedError, csrf_handler)
    app.add_exception_handler(CollaboratorError, collaborator_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe - graphs loaded, and DB reachable for the database backend."""
        if not hasattr(app.state, "flow_engine"):
            return {"status": "error", "detail": "not initialised"}
        if settings.session_backend != "database":
            return {"status": "ok"}
        from dental_flow_db.engine import get_engine

        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "database unavailable"}

    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn dental_flow_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``dental-flow-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "dental_flow_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
