"""Cross-device continuity domain (device registry, handoff snapshots, sync queue, polling delivery)."""
from app.domain.continuity.device_type import detect_device_type
from app.domain.continuity.models import (
    ActiveDevice,
    ConnectionInfo,
    ContextSnapshot,
    Device,
    DeviceNotification,
    DeviceState,
    DeviceType,
    PollResult,
    SnapshotType,
    SyncQueueEntry,
    SyncStatus,
    SyncType,
)
from app.domain.continuity.services import (
    ContextContinuityService,
    DeviceRegistryService,
    NotificationDeliveryService,
    SyncQueueService,
)

__all__ = [
    "ActiveDevice",
    "ConnectionInfo",
    "ContextSnapshot",
    "Device",
    "DeviceNotification",
    "DeviceState",
    "DeviceType",
    "PollResult",
    "SnapshotType",
    "SyncQueueEntry",
    "SyncStatus",
    "SyncType",
    "ContextContinuityService",
    "DeviceRegistryService",
    "NotificationDeliveryService",
    "SyncQueueService",
    "detect_device_type",
]
