"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from worktrace.tracker.orchestrator import WorkspaceOrchestrator


def get_orchestrator(request: Request) -> WorkspaceOrchestrator:
    """Orchestrator attached to the application at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Tracking is not running")
    return orchestrator
