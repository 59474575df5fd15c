"""Continuity domain repository protocols."""
from datetime import datetime
from typing import Optional, Protocol

from app.domain.continuity.models import (
    ContextSnapshot,
    Device,
    DeviceNotification,
    SyncQueueEntry,
)


class DeviceRepository(Protocol):
    """Device repository protocol. Keyed by (device_id, user_id)."""

    async def get(self, user_id: str, device_id: str) -> Optional[Device]:
        """Get a device of a user."""
        ...

    async def upsert(self, device: Device) -> Device:
        """Insert, or overwrite the mutable fields of the row with the same key."""
        ...

    async def list_by_user(self, user_id: str) -> list[Device]:
        """List a user's devices, most recent heartbeat first."""
        ...

    async def deactivate(self, user_id: str, device_id: str, now: datetime) -> bool:
        """Clear the cached active flag and connection id. Returns True if the device exists."""
        ...


class SnapshotRepository(Protocol):
    """Context snapshot repository protocol (append-only)."""

    async def create(self, snapshot: ContextSnapshot) -> ContextSnapshot:
        ...

    async def get_latest(
        self, user_id: str, exclude_device_id: Optional[str] = None
    ) -> Optional[ContextSnapshot]:
        ...

    async def get_latest_for_device(self, user_id: str, device_id: str) -> Optional[ContextSnapshot]:
        """Newest snapshot saved by one device."""
        ...


class SyncQueueRepository(Protocol):
    """Sync queue repository protocol."""

    async def create(self, entry: SyncQueueEntry) -> SyncQueueEntry:
        ...

    async def get(self, sync_id: str) -> Optional[SyncQueueEntry]:
        ...

    async def list_pending_for_device(
        self, device_id: str, user_id: Optional[str] = None
    ) -> list[SyncQueueEntry]:
        """Pending entries addressed to device_id or broadcast, not sent by it, not completed by it."""
        ...

    async def mark_completed(self, sync_id: str, now: datetime) -> bool:
        """pending -> completed. Returns True only when this call made the transition."""
        ...

    async def record_device_completion(self, sync_id: str, device_id: str, now: datetime) -> bool:
        """Record that one device finished a broadcast entry. Returns True when newly recorded."""
        ...


class DeviceNotificationRepository(Protocol):
    """Device notification repository protocol."""

    async def create(self, notification: DeviceNotification) -> DeviceNotification:
        ...

    async def claim_undelivered(
        self,
        user_id: str,
        device_id: str,
        since: datetime,
        limit: int,
        now: datetime,
    ) -> list[DeviceNotification]:
        """Read up to `limit` undelivered events for device_id (oldest first) and flag them delivered."""
        ...

    async def acknowledge(
        self, event_ids: list[str], now: datetime, user_id: Optional[str] = None
    ) -> int:
        """Flag events acknowledged. Returns how many were newly acknowledged."""
        ...
