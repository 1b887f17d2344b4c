"""
Workspace API routes.

Endpoints for listing workspaces and starting or stopping tracking of a
workspace root.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from worktrace.api.deps import get_orchestrator
from worktrace.api.schemas import WorkspaceCreate, WorkspaceResponse
from worktrace.db.connection import get_db
from worktrace.db.repositories import WorkspaceRepository
from worktrace.models.db import Workspace
from worktrace.tracker.orchestrator import WorkspaceOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


def _to_response(
    workspace: Workspace, orchestrator: WorkspaceOrchestrator
) -> WorkspaceResponse:
    response = WorkspaceResponse.model_validate(workspace)
    state = orchestrator.registry.get_by_workspace_id(workspace.id)
    if state is not None:
        response.is_tracked = True
        response.repo = state.repo
        response.branch = state.branch
    return response


@router.get("/workspaces", response_model=list[WorkspaceResponse])
async def list_workspaces(
    active_only: bool = False,
    session: Session = Depends(get_db),
    orchestrator: WorkspaceOrchestrator = Depends(get_orchestrator),
) -> list[WorkspaceResponse]:
    """
    List workspaces.

    Args:
        active_only: If true, only return active workspaces
    """
    repo = WorkspaceRepository(session)
    workspaces = repo.get_active() if active_only else repo.list_all()
    return [_to_response(w, orchestrator) for w in workspaces]


@router.post("/workspaces", response_model=WorkspaceResponse, status_code=201)
async def add_workspace(
    payload: WorkspaceCreate,
    session: Session = Depends(get_db),
    orchestrator: WorkspaceOrchestrator = Depends(get_orchestrator),
) -> WorkspaceResponse:
    """
    Start tracking a workspace root.

    Raises:
        HTTPException: 422 if the root is not a directory
    """
    try:
        state = await orchestrator.add_workspace(payload.root, name=payload.name)
    except NotADirectoryError as e:
        raise HTTPException(status_code=422, detail=str(e))

    workspace = WorkspaceRepository(session).get(state.workspace_id)
    if workspace is None:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return _to_response(workspace, orchestrator)


@router.delete("/workspaces", status_code=204)
async def remove_workspace(
    root: str,
    deactivate: bool = False,
    orchestrator: WorkspaceOrchestrator = Depends(get_orchestrator),
) -> Response:
    """
    Stop tracking a workspace root and close its session.

    Args:
        root: Workspace folder
        deactivate: Also mark the workspace inactive

    Raises:
        HTTPException: 404 if the root is not tracked
    """
    if not orchestrator.remove_workspace(root, deactivate=deactivate):
        raise HTTPException(status_code=404, detail=f"Root is not tracked: {root}")
    return Response(status_code=204)
