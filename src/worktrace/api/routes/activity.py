"""
Activity API routes.

Adapter between the editor front-end and the orchestrator: activity
events in, tracking summary out.
"""

import logging

from fastapi import APIRouter, Depends

from worktrace.api.deps import get_orchestrator
from worktrace.api.schemas import (
    ActivityRequest,
    ActivityResponse,
    TrackingSummaryResponse,
)
from worktrace.models.db import utc_now
from worktrace.tracker.events import ActivityEvent
from worktrace.tracker.orchestrator import WorkspaceOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/activity", response_model=ActivityResponse)
async def record_activity(
    payload: ActivityRequest,
    orchestrator: WorkspaceOrchestrator = Depends(get_orchestrator),
) -> ActivityResponse:
    """
    Record an activity event for a tracked root.

    Events for roots that are not tracked are dropped and reported as not
    accepted. A missing timestamp means now.
    """
    event = ActivityEvent(type=payload.type, timestamp=payload.timestamp or utc_now())
    accepted = orchestrator.record_activity(payload.root, event)
    return ActivityResponse(accepted=accepted)


@router.get("/tracking/summary", response_model=TrackingSummaryResponse)
async def tracking_summary(
    orchestrator: WorkspaceOrchestrator = Depends(get_orchestrator),
) -> TrackingSummaryResponse:
    """Active time of the open sessions across tracked workspaces."""
    summary = orchestrator.summary()
    return TrackingSummaryResponse(
        active_seconds=summary.active_seconds,
        workspace_count=summary.workspace_count,
        workspaces=summary.workspaces,
        idle_threshold_minutes=orchestrator.policy.config.threshold_minutes,
    )
