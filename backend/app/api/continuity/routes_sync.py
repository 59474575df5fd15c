"""Sync queue routes."""
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from app.api.deps import get_current_user_id, get_sync_service
from app.domain.common.types import to_epoch_ms
from app.domain.continuity.models import SyncQueueEntry
from app.domain.continuity.services import SyncQueueService

router = APIRouter()


class QueueSyncRequest(BaseModel):
    """Queue sync request. Omit to_device_id to address every other device."""
    from_device_id: str
    payload: Any = None
    to_device_id: Optional[str] = None


class CompleteSyncRequest(BaseModel):
    """Complete sync request; device_id records a per-device completion of a broadcast."""
    device_id: Optional[str] = None


class SyncEntryResponse(BaseModel):
    """Sync queue entry."""
    id: str
    from_device_id: str
    to_device_id: Optional[str] = None
    sync_type: str
    priority: int
    payload: Any = None
    status: str
    timestamp: int  # ms since epoch
    completed_at: Optional[int] = None


def _entry_response(entry: SyncQueueEntry) -> SyncEntryResponse:
    return SyncEntryResponse(
        id=entry.id,
        from_device_id=entry.from_device_id,
        to_device_id=entry.to_device_id,
        sync_type=entry.sync_type.value,
        priority=entry.priority,
        payload=entry.payload,
        status=entry.status.value,
        timestamp=to_epoch_ms(entry.created_at),
        completed_at=to_epoch_ms(entry.completed_at) if entry.completed_at else None,
    )


@router.post("")
async def queue_sync(
    request: QueueSyncRequest,
    user_id: str = Depends(get_current_user_id),
    service: SyncQueueService = Depends(get_sync_service),
):
    """Queue a payload for one device or all other devices."""
    sync_id = await service.queue_sync(
        user_id, request.from_device_id, request.payload, request.to_device_id
    )
    return {"sync_id": sync_id}


@router.get("/pending", response_model=list[SyncEntryResponse])
async def get_pending_syncs(
    device_id: str,
    user_id: str = Depends(get_current_user_id),
    service: SyncQueueService = Depends(get_sync_service),
):
    """Pending entries for a device, oldest first within a priority."""
    entries = await service.get_pending_syncs(device_id, user_id=user_id)
    return [_entry_response(e) for e in entries]


@router.post("/{sync_id}/complete", response_model=SyncEntryResponse)
async def complete_sync(
    sync_id: str,
    request: Optional[CompleteSyncRequest] = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    service: SyncQueueService = Depends(get_sync_service),
):
    """Mark an entry completed (idempotent; 404 for unknown ids)."""
    device_id = request.device_id if request else None
    entry = await service.mark_sync_completed(sync_id, device_id=device_id, user_id=user_id)
    return _entry_response(entry)
