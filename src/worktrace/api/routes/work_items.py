"""
Work item API routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from worktrace.api.deps import get_orchestrator
from worktrace.api.schemas import (
    AllocationResponse,
    WorkItemCreate,
    WorkItemResponse,
    WorkItemResultResponse,
)
from worktrace.exceptions import WorkspaceNotFoundError
from worktrace.tracker.orchestrator import WorkspaceOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/work-items", response_model=WorkItemResultResponse, status_code=201)
async def submit_work_item(
    payload: WorkItemCreate,
    orchestrator: WorkspaceOrchestrator = Depends(get_orchestrator),
) -> WorkItemResultResponse:
    """
    Submit a manual work item and allocate unallocated time to it.

    Raises:
        HTTPException: 404 if the workspace does not exist
    """
    try:
        result = orchestrator.submit_work_item(
            workspace_id=payload.workspace_id,
            title=payload.title,
            occurred_at=payload.occurred_at,
            detail=payload.detail,
            url=payload.url,
            external_id=payload.external_id,
            session_ids=payload.session_ids,
        )
    except WorkspaceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return WorkItemResultResponse(
        work_item=WorkItemResponse.model_validate(result.work_item),
        allocations=[AllocationResponse.model_validate(a) for a in result.allocations],
        created=result.created,
    )
