"""Database models."""
from app.infra.db.models.device import DeviceModel
from app.infra.db.models.context_snapshot import ContextSnapshotModel
from app.infra.db.models.sync_queue import SyncQueueModel, SyncCompletionModel
from app.infra.db.models.device_notification import DeviceNotificationModel

__all__ = [
    "DeviceModel",
    "ContextSnapshotModel",
    "SyncQueueModel",
    "SyncCompletionModel",
    "DeviceNotificationModel",
]
