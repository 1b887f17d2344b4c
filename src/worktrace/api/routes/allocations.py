"""
Allocation API routes.

Reading the latest allocation of a workspace and correcting hours, note
or tag of an allocation.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from worktrace.api.schemas import AllocationResponse, AllocationUpdate
from worktrace.db.connection import get_db
from worktrace.exceptions import AllocationNotFoundError
from worktrace.tracker.allocation import AllocationEngine

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/allocations/recent", response_model=Optional[AllocationResponse])
async def most_recent_allocation(
    workspace_id: UUID,
    session: Session = Depends(get_db),
) -> Optional[AllocationResponse]:
    """Newest allocation logged for a workspace, or null."""
    allocation = AllocationEngine(session).most_recent_allocation(workspace_id)
    if allocation is None:
        return None
    return AllocationResponse.model_validate(allocation)


@router.patch("/allocations/{allocation_id}", response_model=AllocationResponse)
async def update_allocation(
    allocation_id: UUID,
    payload: AllocationUpdate,
    session: Session = Depends(get_db),
) -> AllocationResponse:
    """
    Edit an allocation's hours, note or tag.

    Raises:
        HTTPException: 404 if the allocation does not exist
        HTTPException: 422 if no field was given
    """
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=422, detail="No fields to update")

    engine = AllocationEngine(session)
    try:
        allocation = None
        if "hours" in changes:
            if changes["hours"] is None:
                raise HTTPException(status_code=422, detail="hours cannot be null")
            allocation = engine.update_hours(allocation_id, changes["hours"])
        if "note" in changes:
            allocation = engine.update_note(allocation_id, changes["note"])
        if "tag" in changes:
            allocation = engine.update_tag(allocation_id, changes["tag"])
    except AllocationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    session.commit()
    logger.info(f"Updated allocation {allocation_id}: {', '.join(changes)}")
    return AllocationResponse.model_validate(allocation)
