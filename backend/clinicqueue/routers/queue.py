"""
Waiting-room queue API routes.
"""

from fastapi import APIRouter, HTTPException, status, Depends, Response

from ..models.queue import (
    QueueEntry,
    QueueEntryCreate,
    QueueEntryUpdate,
    QueueListing,
    QueueReorderRequest,
    QueueStats
)
from ..models.user import User
from ..services.queue_service import (
    DuplicateQueueEntry,
    InvalidStatusChange,
    QueueEntryNotFound,
    QueueService
)
from .dependencies import require_doctor, require_secretary, require_staff

router = APIRouter(prefix="/queue", tags=["Queue"])


def _not_found(e: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=QueueListing, response_model_by_alias=False)
async def get_queue(current_user: User = Depends(require_staff)):
    """Today's queue in display order."""
    return await QueueService.get_listing()


@router.get("/stats", response_model=QueueStats)
async def get_queue_stats(current_user: User = Depends(require_staff)):
    """Counts for today's queue."""
    return await QueueService.get_stats()


@router.get("/next", response_model=QueueEntry, response_model_by_alias=False)
async def get_next_patient(current_user: User = Depends(require_doctor)):
    """First waiting patient."""
    entry = await QueueService.next_entry()
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No patients waiting in queue"
        )
    return entry


@router.put("/reorder", response_model=QueueListing, response_model_by_alias=False)
async def reorder_queue(
    request: QueueReorderRequest,
    current_user: User = Depends(require_secretary)
):
    """Store a new order for the waiting patients."""
    try:
        entries = await QueueService.reorder(request.queue_order)
    except QueueEntryNotFound as e:
        raise _not_found(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return QueueListing(source="live", entries=entries)


@router.delete("/completed", status_code=status.HTTP_204_NO_CONTENT)
async def clear_completed(current_user: User = Depends(require_secretary)):
    """Remove all completed entries."""
    await QueueService.clear_completed()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("", response_model=QueueEntry, response_model_by_alias=False, status_code=status.HTTP_201_CREATED)
async def add_to_queue(
    entry_data: QueueEntryCreate,
    current_user: User = Depends(require_staff)
):
    """Check a walk-in or an appointment into the queue."""
    try:
        return await QueueService.add_entry(entry_data, current_user.id)
    except DuplicateQueueEntry as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.put("/{entry_id}", response_model=QueueEntry, response_model_by_alias=False)
async def update_queue_entry(
    entry_id: str,
    update: QueueEntryUpdate,
    current_user: User = Depends(require_staff)
):
    """Update status or notes of a queue entry."""
    try:
        return await QueueService.update_entry(entry_id, update)
    except QueueEntryNotFound as e:
        raise _not_found(e)
    except InvalidStatusChange as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_queue(
    entry_id: str,
    current_user: User = Depends(require_secretary)
):
    """Remove a patient from the queue."""
    try:
        await QueueService.remove_entry(entry_id)
    except QueueEntryNotFound as e:
        raise _not_found(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
