"""API dependencies."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import UnauthorizedError
from app.domain.continuity.services import (
    ContextContinuityService,
    DeviceRegistryService,
    NotificationDeliveryService,
    SyncQueueService,
)
from app.infra.db.repositories.device_notification_repo import DeviceNotificationRepositoryImpl
from app.infra.db.repositories.device_repo import DeviceRepositoryImpl
from app.infra.db.repositories.snapshot_repo import SnapshotRepositoryImpl
from app.infra.db.repositories.sync_queue_repo import SyncQueueRepositoryImpl
from app.infra.db.session import get_db
from app.settings import settings

__all__ = [
    "get_db",
    "get_current_user_id",
    "get_registry_service",
    "get_continuity_service",
    "get_sync_service",
    "get_delivery_service",
]


async def get_current_user_id(request: Request) -> str:
    """User id established by the upstream auth layer (trusted header)."""
    user_id = (request.headers.get(settings.trusted_user_header) or "").strip()
    if not user_id:
        raise UnauthorizedError("Could not establish user identity")
    return user_id


def get_registry_service(db: AsyncSession = Depends(get_db)) -> DeviceRegistryService:
    """Device registry bound to the request session."""
    return DeviceRegistryService(
        DeviceRepositoryImpl(db),
        liveness_seconds=settings.device_liveness_seconds,
    )


def get_continuity_service(db: AsyncSession = Depends(get_db)) -> ContextContinuityService:
    """Snapshot store bound to the request session."""
    return ContextContinuityService(SnapshotRepositoryImpl(db))


def get_sync_service(db: AsyncSession = Depends(get_db)) -> SyncQueueService:
    """Sync queue bound to the request session."""
    return SyncQueueService(SyncQueueRepositoryImpl(db))


def get_delivery_service(
    db: AsyncSession = Depends(get_db),
    registry: DeviceRegistryService = Depends(get_registry_service),
    continuity: ContextContinuityService = Depends(get_continuity_service),
) -> NotificationDeliveryService:
    """Polling delivery (with registry and snapshots for heartbeat-via-poll and transfers) bound to the request session."""
    return NotificationDeliveryService(
        DeviceNotificationRepositoryImpl(db),
        registry=registry,
        continuity=continuity,
        page_size=settings.poll_page_size,
        lookback_seconds=settings.poll_lookback_seconds,
        poll_interval_ms=settings.poll_interval_ms,
    )
