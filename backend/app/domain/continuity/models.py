"""Continuity domain models."""
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.domain.common.types import JsonValue, generate_id


class DeviceType(str, Enum):
    """Coarse device class reported by (or detected for) a client."""

    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    UNKNOWN = "unknown"


class SnapshotType(str, Enum):
    """Handoff snapshot kind."""

    FULL_STATE = "full_state"
    PARTIAL = "partial"


class SyncStatus(str, Enum):
    """Sync queue entry status."""

    PENDING = "pending"
    COMPLETED = "completed"


class SyncType(str, Enum):
    """What a sync payload carries; read from payload["type"] when recognised."""

    CONTEXT = "context"
    FILE = "file"
    SEARCH = "search"
    PROJECT = "project"
    NOTIFICATION = "notification"


class Device(BaseModel):
    """A client install (browser/app) belonging to one user."""

    id: str
    device_id: str
    user_id: str
    device_type: DeviceType = DeviceType.UNKNOWN
    device_name: Optional[str] = None
    browser_info: Optional[str] = None
    last_heartbeat: datetime
    is_active: bool = True  # cached flag; see is_live()
    current_context: JsonValue = None
    connection_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def is_live(self, now: datetime, threshold_seconds: int) -> bool:
        """Active iff the heartbeat is fresher than the threshold and the cached flag is not false."""
        if self.is_active is False:
            return False
        return now - self.last_heartbeat < timedelta(seconds=threshold_seconds)


class ContextSnapshot(BaseModel):
    """Append-only capture of one device's application state."""

    id: str
    user_id: str
    device_id: str
    snapshot_type: SnapshotType
    context_data: JsonValue = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def create(
        cls,
        user_id: str,
        device_id: str,
        snapshot_type: SnapshotType,
        context_data: JsonValue,
        metadata: Optional[dict[str, Any]],
        created_at: datetime,
    ) -> "ContextSnapshot":
        """Create a new snapshot."""
        return cls(
            id=generate_id(),
            user_id=user_id,
            device_id=device_id,
            snapshot_type=snapshot_type,
            context_data=context_data,
            metadata=metadata or {},
            created_at=created_at,
        )


class SyncQueueEntry(BaseModel):
    """Payload addressed to one device (to_device_id) or to all others (None)."""

    id: str
    user_id: str
    from_device_id: str
    to_device_id: Optional[str] = None
    sync_type: SyncType = SyncType.CONTEXT
    priority: int = 0
    payload: JsonValue = None
    status: SyncStatus = SyncStatus.PENDING
    created_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_broadcast(self) -> bool:
        return self.to_device_id is None

    @classmethod
    def create(
        cls,
        user_id: str,
        from_device_id: str,
        payload: JsonValue,
        to_device_id: Optional[str],
        created_at: datetime,
    ) -> "SyncQueueEntry":
        """Create a pending entry; sync type and priority hints come from the payload."""
        sync_type = SyncType.CONTEXT
        priority = 0
        if isinstance(payload, dict):
            raw_type = payload.get("type")
            if raw_type in {t.value for t in SyncType}:
                sync_type = SyncType(raw_type)
            raw_priority = payload.get("priority")
            if isinstance(raw_priority, int) and not isinstance(raw_priority, bool):
                priority = raw_priority
        return cls(
            id=generate_id(),
            user_id=user_id,
            from_device_id=from_device_id,
            to_device_id=to_device_id,
            sync_type=sync_type,
            priority=priority,
            payload=payload,
            status=SyncStatus.PENDING,
            created_at=created_at,
        )


class DeviceNotification(BaseModel):
    """Cross-device event, eligible for every device of the user except its source."""

    id: str
    user_id: str
    source_device: str
    target_device: Optional[str] = None
    event_type: str
    event_data: JsonValue = None
    created_at: datetime
    delivered: bool = False
    delivered_at: Optional[datetime] = None
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        user_id: str,
        source_device: str,
        event_type: str,
        event_data: JsonValue,
        target_device: Optional[str],
        created_at: datetime,
    ) -> "DeviceNotification":
        """Create an undelivered notification."""
        return cls(
            id=generate_id(),
            user_id=user_id,
            source_device=source_device,
            target_device=target_device,
            event_type=event_type,
            event_data=event_data,
            created_at=created_at,
        )


class ActiveDevice(BaseModel):
    """Device listing row with liveness derived at read time."""

    device_id: str
    device_type: DeviceType
    device_name: Optional[str] = None
    last_heartbeat: datetime
    is_active: bool
    current_context: JsonValue = None


class ConnectionInfo(BaseModel):
    """Polling parameters handed to a device when it opens a connection."""

    connection_id: str
    device_id: str
    poll_interval_ms: int
    lookback_seconds: int
    page_size: int


class PollResult(BaseModel):
    """One page of delivered events."""

    events: list[DeviceNotification]
    has_more: bool
    next_check_timestamp: datetime


class DeviceState(BaseModel):
    """One device's stored state with liveness derived at read time."""

    device_id: str
    device_type: DeviceType
    device_name: Optional[str] = None
    current_context: JsonValue = None
    connection_id: Optional[str] = None
    last_heartbeat: datetime
    is_active: bool
    is_stale: bool
