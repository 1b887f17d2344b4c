"""
WorkTrace FastAPI Application.

Local API used by the editor front-end to report activity, manage tracked
workspaces and read or correct allocations.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Sequence

from fastapi import FastAPI

from worktrace.api.routes import activity, allocations, work_items, workspaces
from worktrace.config import settings
from worktrace.db.connection import check_connection, init_db
from worktrace.logging_config import setup_logging
from worktrace.tracker.orchestrator import WorkspaceOrchestrator

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Initializes the schema, starts tracking the configured roots and closes
    every open session on shutdown.
    """
    setup_logging(context="api")

    logger.info("Initializing database...")
    init_db()
    logger.info("✓ Database ready")

    orchestrator: WorkspaceOrchestrator = app.state.orchestrator
    await orchestrator.start(app.state.roots)
    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown initiated...")
    try:
        await orchestrator.stop()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)
    logger.info("Application shutdown complete")


def create_app(
    orchestrator: Optional[WorkspaceOrchestrator] = None,
    roots: Optional[Sequence[str | Path]] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        orchestrator: Orchestrator serving the routes (a default one is
            created when omitted)
        roots: Workspace roots tracked at startup (defaults to
            settings.tracked_roots)
    """
    application = FastAPI(
        lifespan=lifespan,
        title="WorkTrace API",
        description="Active time tracking and allocation for editor workspaces",
        version=VERSION,
    )
    application.state.orchestrator = orchestrator or WorkspaceOrchestrator()
    application.state.roots = list(settings.tracked_roots if roots is None else roots)

    @application.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        db_status = "healthy" if check_connection() else "unhealthy"
        return {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "database": db_status,
            "version": VERSION,
        }

    application.include_router(activity.router, prefix="", tags=["activity"])
    application.include_router(workspaces.router, prefix="", tags=["workspaces"])
    application.include_router(work_items.router, prefix="", tags=["work-items"])
    application.include_router(allocations.router, prefix="", tags=["allocations"])
    return application


app = create_app()
