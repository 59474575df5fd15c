"""Continuity domain services.

Four collaborating services, each stateless between calls: everything they
know lives in the store behind the repository protocols, so any instance can
serve any device's next request.

- DeviceRegistryService: registration, heartbeats, liveness.
- ContextContinuityService: append-only handoff snapshots.
- SyncQueueService: targeted and broadcast sync payloads.
- NotificationDeliveryService: event fan-out through polling, delivery and
  acknowledgment bookkeeping.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

from app.domain.common.errors import NotFoundError, ValidationError
from app.domain.common.types import Clock, JsonValue, generate_id, to_epoch_ms, utcnow
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
)
from app.domain.continuity.repositories import (
    DeviceNotificationRepository,
    DeviceRepository,
    SnapshotRepository,
    SyncQueueRepository,
)

logger = logging.getLogger(__name__)

DEVICE_LIVENESS_SECONDS = 300
POLL_PAGE_SIZE = 20
POLL_LOOKBACK_SECONDS = 30
POLL_INTERVAL_MS = 5000


def _require(value: Optional[str], name: str) -> str:
    """Reject missing or blank identifiers."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return value


def _parse_enum(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}") from None


class DeviceRegistryService:
    """Device identity and liveness."""

    def __init__(
        self,
        device_repo: DeviceRepository,
        liveness_seconds: int = DEVICE_LIVENESS_SECONDS,
        clock: Clock = utcnow,
    ):
        self.device_repo = device_repo
        self.liveness_seconds = liveness_seconds
        self.clock = clock

    async def register_device(
        self,
        user_id: str,
        device_id: str,
        device_type: Optional[str | DeviceType] = None,
        device_name: Optional[str] = None,
        browser_info: Optional[str] = None,
        user_agent: Optional[str] = None,
        mobile_hint: Optional[str] = None,
    ) -> Device:
        """Idempotent upsert on (device_id, user_id). Never moves last_heartbeat backwards.

        Without an explicit device_type the type is guessed from the user agent
        (and Sec-CH-UA-Mobile hint); an unknown guess never overwrites a known type.
        """
        _require(user_id, "user_id")
        _require(device_id, "device_id")
        if device_type is not None:
            resolved_type = _parse_enum(DeviceType, device_type, "device_type")
        else:
            resolved_type = detect_device_type(user_agent, mobile_hint)
        now = self.clock()

        existing = await self.device_repo.get(user_id, device_id)
        if existing is None:
            device = Device(
                id=generate_id(),
                device_id=device_id,
                user_id=user_id,
                device_type=resolved_type,
                device_name=device_name,
                browser_info=browser_info,
                last_heartbeat=now,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            logger.info("Registered device %s for user %s (%s)", device_id, user_id, resolved_type.value)
        else:
            updates: dict[str, Any] = {
                "last_heartbeat": max(existing.last_heartbeat, now),
                "updated_at": now,
            }
            if device_type is not None or resolved_type is not DeviceType.UNKNOWN:
                updates["device_type"] = resolved_type
            if device_name is not None:
                updates["device_name"] = device_name
            if browser_info is not None:
                updates["browser_info"] = browser_info
            device = existing.model_copy(update=updates)
            logger.debug("Re-registered device %s for user %s", device_id, user_id)
        return await self.device_repo.upsert(device)

    async def send_heartbeat(
        self,
        user_id: str,
        device_id: str,
        current_context: JsonValue = None,
        connection_id: Optional[str] = None,
    ) -> Device:
        """Refresh liveness, store context when supplied. Unknown devices are auto-registered."""
        _require(user_id, "user_id")
        _require(device_id, "device_id")
        now = self.clock()

        existing = await self.device_repo.get(user_id, device_id)
        if existing is None:
            device = Device(
                id=generate_id(),
                device_id=device_id,
                user_id=user_id,
                device_type=DeviceType.UNKNOWN,
                last_heartbeat=now,
                is_active=True,
                current_context=current_context,
                connection_id=connection_id,
                created_at=now,
                updated_at=now,
            )
            logger.info("Heartbeat from unregistered device %s (user %s); auto-registered", device_id, user_id)
        else:
            updates: dict[str, Any] = {
                "last_heartbeat": now,
                "is_active": True,
                "updated_at": now,
            }
            if current_context is not None:
                updates["current_context"] = current_context
            if connection_id:
                updates["connection_id"] = connection_id
            device = existing.model_copy(update=updates)
        return await self.device_repo.upsert(device)

    def is_live(self, device: Device, now: Optional[datetime] = None) -> bool:
        return device.is_live(now or self.clock(), self.liveness_seconds)

    async def get_active_devices(self, user_id: str, include_inactive: bool = False) -> list[ActiveDevice]:
        """A user's devices with liveness derived now; inactive ones dropped unless asked for."""
        _require(user_id, "user_id")
        now = self.clock()
        devices = await self.device_repo.list_by_user(user_id)
        listed = []
        for d in devices:
            live = self.is_live(d, now)
            if not live and not include_inactive:
                continue
            listed.append(
                ActiveDevice(
                    device_id=d.device_id,
                    device_type=d.device_type,
                    device_name=d.device_name,
                    last_heartbeat=d.last_heartbeat,
                    is_active=live,
                    current_context=d.current_context,
                )
            )
        return listed

    async def disconnect(self, user_id: str, device_id: str) -> None:
        """Mark a device inactive until its next heartbeat."""
        _require(user_id, "user_id")
        _require(device_id, "device_id")
        found = await self.device_repo.deactivate(user_id, device_id, self.clock())
        if not found:
            raise NotFoundError("Device", device_id)
        logger.info("Device %s of user %s disconnected", device_id, user_id)

    async def get_device_state(self, user_id: str, device_id: str) -> DeviceState:
        """Stored state of one device; NotFoundError when it was never seen."""
        _require(user_id, "user_id")
        _require(device_id, "device_id")
        device = await self.device_repo.get(user_id, device_id)
        if device is None:
            raise NotFoundError("Device", device_id)
        live = self.is_live(device)
        return DeviceState(
            device_id=device.device_id,
            device_type=device.device_type,
            device_name=device.device_name,
            current_context=device.current_context,
            connection_id=device.connection_id,
            last_heartbeat=device.last_heartbeat,
            is_active=live,
            is_stale=not live,
        )


class ContextContinuityService:
    """Handoff snapshots. Append-only; latest wins."""

    def __init__(self, snapshot_repo: SnapshotRepository, clock: Clock = utcnow):
        self.snapshot_repo = snapshot_repo
        self.clock = clock

    async def save_context_snapshot(
        self,
        user_id: str,
        device_id: str,
        snapshot_type: str | SnapshotType,
        context_data: JsonValue,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """Append a snapshot and return its id."""
        _require(user_id, "user_id")
        _require(device_id, "device_id")
        kind = _parse_enum(SnapshotType, snapshot_type, "snapshot_type")
        snapshot = ContextSnapshot.create(
            user_id=user_id,
            device_id=device_id,
            snapshot_type=kind,
            context_data=context_data,
            metadata=metadata,
            created_at=self.clock(),
        )
        created = await self.snapshot_repo.create(snapshot)
        logger.debug("Saved %s snapshot %s from device %s", kind.value, created.id, device_id)
        return created.id

    async def get_latest_context(
        self, user_id: str, exclude_device_id: Optional[str] = None
    ) -> Optional[ContextSnapshot]:
        """Newest snapshot for the user, skipping exclude_device_id's own. None for a brand-new user."""
        _require(user_id, "user_id")
        return await self.snapshot_repo.get_latest(user_id, exclude_device_id or None)

    async def get_latest_from_device(self, user_id: str, device_id: str) -> Optional[ContextSnapshot]:
        _require(user_id, "user_id")
        _require(device_id, "device_id")
        return await self.snapshot_repo.get_latest_for_device(user_id, device_id)


class SyncQueueService:
    """Point-to-point and broadcast sync payloads.

    Broadcast entries (to_device_id=None) are a single row read by every other
    device of the user. Completing one with a device_id records a per-device
    completion so that device stops seeing it while the others still do;
    completing without a device_id closes the entry for everyone.
    """

    def __init__(self, sync_repo: SyncQueueRepository, clock: Clock = utcnow):
        self.sync_repo = sync_repo
        self.clock = clock

    async def queue_sync(
        self,
        user_id: str,
        from_device_id: str,
        payload: JsonValue,
        to_device_id: Optional[str] = None,
    ) -> str:
        """Append a pending entry and return its id."""
        _require(user_id, "user_id")
        _require(from_device_id, "from_device_id")
        if to_device_id is not None:
            _require(to_device_id, "to_device_id")
        if to_device_id is not None and to_device_id == from_device_id:
            raise ValidationError("to_device_id must differ from from_device_id")
        entry = SyncQueueEntry.create(
            user_id=user_id,
            from_device_id=from_device_id,
            payload=payload,
            to_device_id=to_device_id,
            created_at=self.clock(),
        )
        created = await self.sync_repo.create(entry)
        logger.info(
            "Queued %s sync %s from %s to %s",
            created.sync_type.value,
            created.id,
            from_device_id,
            to_device_id or "all devices",
        )
        return created.id

    async def get_pending_syncs(self, device_id: str, user_id: Optional[str] = None) -> list[SyncQueueEntry]:
        """Pending entries for device_id, highest priority first, then oldest first."""
        _require(device_id, "device_id")
        return await self.sync_repo.list_pending_for_device(device_id, user_id)

    async def mark_sync_completed(
        self,
        sync_id: str,
        device_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> SyncQueueEntry:
        """Complete an entry. Idempotent; unknown ids raise NotFoundError."""
        _require(sync_id, "sync_id")
        entry = await self.sync_repo.get(sync_id)
        if entry is None or (user_id is not None and entry.user_id != user_id):
            raise NotFoundError("SyncQueueEntry", sync_id)
        now = self.clock()

        if device_id and entry.is_broadcast:
            if device_id == entry.from_device_id:
                raise ValidationError("A device cannot complete its own broadcast")
            recorded = await self.sync_repo.record_device_completion(sync_id, device_id, now)
            if recorded:
                logger.debug("Device %s completed broadcast sync %s", device_id, sync_id)
            return entry

        if device_id and entry.to_device_id != device_id:
            raise ValidationError(f"Sync {sync_id} is not addressed to device {device_id}")
        if entry.status is SyncStatus.COMPLETED:
            return entry
        if await self.sync_repo.mark_completed(sync_id, now):
            logger.info("Sync %s completed", sync_id)
        updated = await self.sync_repo.get(sync_id)
        return updated or entry


class NotificationDeliveryService:
    """Poll-based delivery: at-least-once, never echoed to the source device."""

    def __init__(
        self,
        notification_repo: DeviceNotificationRepository,
        registry: Optional[DeviceRegistryService] = None,
        continuity: Optional[ContextContinuityService] = None,
        page_size: int = POLL_PAGE_SIZE,
        lookback_seconds: int = POLL_LOOKBACK_SECONDS,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        clock: Clock = utcnow,
    ):
        self.notification_repo = notification_repo
        self.registry = registry
        self.continuity = continuity
        self.page_size = page_size
        self.lookback_seconds = lookback_seconds
        self.poll_interval_ms = poll_interval_ms
        self.clock = clock

    async def publish_event(
        self,
        user_id: str,
        source_device: str,
        event_type: str,
        event_data: JsonValue = None,
        target_device: Optional[str] = None,
    ) -> DeviceNotification:
        """Record an event for the user's other devices (or one target device)."""
        _require(user_id, "user_id")
        _require(source_device, "source_device")
        _require(event_type, "event_type")
        if target_device is not None:
            _require(target_device, "target_device")
        if target_device is not None and target_device == source_device:
            raise ValidationError("target_device must differ from source_device")
        notification = DeviceNotification.create(
            user_id=user_id,
            source_device=source_device,
            event_type=event_type,
            event_data=event_data,
            target_device=target_device,
            created_at=self.clock(),
        )
        created = await self.notification_repo.create(notification)
        logger.info("Event %s (%s) published by device %s", created.id, event_type, source_device)
        return created

    async def poll(
        self, user_id: str, device_id: str, last_check: Optional[datetime] = None
    ) -> PollResult:
        """Return and mark delivered one page of events newer than last_check.

        has_more is True when the page is full; the client should poll again
        right away instead of waiting for its interval.
        """
        _require(user_id, "user_id")
        _require(device_id, "device_id")
        now = self.clock()
        since = last_check if last_check is not None else now - timedelta(seconds=self.lookback_seconds)
        events = await self.notification_repo.claim_undelivered(
            user_id=user_id,
            device_id=device_id,
            since=since,
            limit=self.page_size,
            now=now,
        )
        has_more = len(events) == self.page_size
        next_check = events[-1].created_at if events else since
        if events:
            logger.debug("Delivered %d event(s) to device %s (has_more=%s)", len(events), device_id, has_more)
        return PollResult(events=events, has_more=has_more, next_check_timestamp=next_check)

    async def heartbeat_and_poll(
        self,
        user_id: str,
        device_id: str,
        current_context: JsonValue = None,
        connection_id: Optional[str] = None,
        last_check: Optional[datetime] = None,
    ) -> tuple[Device, PollResult]:
        """Heartbeat pushed on the poll channel: one round trip refreshes liveness and drains events."""
        if self.registry is None:
            raise RuntimeError("heartbeat_and_poll requires a DeviceRegistryService")
        device = await self.registry.send_heartbeat(
            user_id, device_id, current_context=current_context, connection_id=connection_id
        )
        result = await self.poll(user_id, device_id, last_check)
        return device, result

    async def acknowledge(self, event_ids: list[str], user_id: Optional[str] = None) -> int:
        """Record client receipt. Observational only; does not affect delivery."""
        ids = list(dict.fromkeys(i for i in event_ids if i))
        if not ids:
            return 0
        count = await self.notification_repo.acknowledge(ids, self.clock(), user_id)
        logger.debug("Acknowledged %d of %d event(s)", count, len(ids))
        return count

    async def open_connection(self, user_id: str, device_id: str) -> ConnectionInfo:
        """Issue a connection id (stored on the device row) and the polling parameters."""
        if self.registry is None:
            raise RuntimeError("open_connection requires a DeviceRegistryService")
        connection_id = f"conn_{secrets.token_hex(8)}"
        await self.registry.send_heartbeat(user_id, device_id, connection_id=connection_id)
        logger.info("Device %s of user %s opened connection %s", device_id, user_id, connection_id)
        return ConnectionInfo(
            connection_id=connection_id,
            device_id=device_id,
            poll_interval_ms=self.poll_interval_ms,
            lookback_seconds=self.lookback_seconds,
            page_size=self.page_size,
        )

    async def transfer_session(self, user_id: str, from_device: str, to_device: str) -> DeviceNotification:
        """Hand the source device's state to one target device.

        The package carries the source's newest snapshot when it has one,
        otherwise the current_context of its last heartbeat, and is delivered
        as a session_transferred event targeted at to_device.
        """
        if self.registry is None:
            raise RuntimeError("transfer_session requires a DeviceRegistryService")
        _require(user_id, "user_id")
        _require(from_device, "from_device")
        _require(to_device, "to_device")
        if from_device == to_device:
            raise ValidationError("to_device must differ from from_device")

        snapshot = None
        if self.continuity is not None:
            snapshot = await self.continuity.get_latest_from_device(user_id, from_device)
        if snapshot is not None:
            source, snapshot_id, context = "snapshot", snapshot.id, snapshot.context_data
        else:
            device = await self.registry.device_repo.get(user_id, from_device)
            if device is None or device.current_context is None:
                raise NotFoundError("DeviceState", from_device)
            source, snapshot_id, context = "heartbeat", None, device.current_context

        package = {
            "from_device": from_device,
            "to_device": to_device,
            "source": source,
            "snapshot_id": snapshot_id,
            "context": context,
            "transferred_at": to_epoch_ms(self.clock()),
        }
        event = await self.publish_event(
            user_id, from_device, "session_transferred", package, target_device=to_device
        )
        logger.info("Session of user %s transferred from %s to %s (%s)", user_id, from_device, to_device, source)
        return event
