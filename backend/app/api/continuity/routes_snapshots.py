"""Context snapshot (handoff) routes."""
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.deps import get_continuity_service, get_current_user_id
from app.domain.common.types import to_epoch_ms
from app.domain.continuity.services import ContextContinuityService

router = APIRouter()


class SaveSnapshotRequest(BaseModel):
    """Save snapshot request."""
    device_id: str
    snapshot_type: str  # full_state | partial
    context_data: Any = None
    metadata: Optional[dict[str, Any]] = None


class SnapshotResponse(BaseModel):
    """Snapshot response."""
    id: str
    device_id: str
    snapshot_type: str
    context_data: Any = None
    metadata: dict[str, Any]
    timestamp: int  # ms since epoch


class LatestSnapshotResponse(BaseModel):
    """Latest snapshot; null when the user has none yet."""
    snapshot: Optional[SnapshotResponse] = None


@router.post("")
async def save_snapshot(
    request: SaveSnapshotRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContextContinuityService = Depends(get_continuity_service),
):
    """Append a context snapshot for handoff."""
    snapshot_id = await service.save_context_snapshot(
        user_id,
        request.device_id,
        request.snapshot_type,
        request.context_data,
        request.metadata,
    )
    return {"snapshot_id": snapshot_id}


@router.get("/latest", response_model=LatestSnapshotResponse)
async def get_latest_snapshot(
    exclude_device_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: ContextContinuityService = Depends(get_continuity_service),
):
    """Most recent snapshot, usually from another device (exclude_device_id = the caller)."""
    snapshot = await service.get_latest_context(user_id, exclude_device_id)
    if snapshot is None:
        return LatestSnapshotResponse(snapshot=None)
    return LatestSnapshotResponse(
        snapshot=SnapshotResponse(
            id=snapshot.id,
            device_id=snapshot.device_id,
            snapshot_type=snapshot.snapshot_type.value,
            context_data=snapshot.context_data,
            metadata=snapshot.metadata,
            timestamp=to_epoch_ms(snapshot.created_at),
        )
    )
