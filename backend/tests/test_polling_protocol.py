"""Tests for event publishing and polling delivery."""
from datetime import timedelta

import pytest
from sqlalchemy import update

from app.domain.common.errors import NotFoundError, ValidationError
from app.domain.continuity.services import (
    ContextContinuityService,
    DeviceRegistryService,
    NotificationDeliveryService,
)
from app.infra.db.models.device_notification import DeviceNotificationModel
from app.infra.db.repositories.device_notification_repo import DeviceNotificationRepositoryImpl
from app.infra.db.repositories.device_repo import DeviceRepositoryImpl
from app.infra.db.repositories.snapshot_repo import SnapshotRepositoryImpl

from conftest import USER_ID


@pytest.fixture
def registry(db_session, clock):
    return DeviceRegistryService(DeviceRepositoryImpl(db_session), clock=clock)


@pytest.fixture
def delivery(db_session, registry, clock):
    return NotificationDeliveryService(
        DeviceNotificationRepositoryImpl(db_session),
        registry=registry,
        page_size=20,
        lookback_seconds=30,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_no_self_delivery(delivery, clock):
    await delivery.publish_event(USER_ID, "laptop", "tab_opened", {"url": "https://example.com"})
    clock.advance(1)

    own = await delivery.poll(USER_ID, "laptop")
    assert own.events == []

    other = await delivery.poll(USER_ID, "phone")
    assert [e.event_type for e in other.events] == ["tab_opened"]
    assert other.events[0].delivered is True


@pytest.mark.asyncio
async def test_no_redelivery(delivery, clock):
    start = clock.now
    await delivery.publish_event(USER_ID, "laptop", "tab_opened")
    clock.advance(1)

    first = await delivery.poll(USER_ID, "phone", start)
    assert len(first.events) == 1
    second = await delivery.poll(USER_ID, "phone", start)
    assert second.events == []


@pytest.mark.asyncio
async def test_delivered_once_across_devices(delivery, clock):
    """Delivery is per event, not per device: the first eligible poller takes it."""
    start = clock.now
    await delivery.publish_event(USER_ID, "laptop", "tab_opened")
    clock.advance(1)

    phone = await delivery.poll(USER_ID, "phone", start)
    tablet = await delivery.poll(USER_ID, "tablet", start)
    assert len(phone.events) == 1
    assert tablet.events == []


@pytest.mark.asyncio
async def test_paging_drains_backlog(delivery, clock):
    start = clock.now - timedelta(seconds=1)
    published = []
    for i in range(45):
        event = await delivery.publish_event(USER_ID, "laptop", "clipboard", {"n": i})
        published.append(event.id)
        clock.advance(1)

    pages = []
    last_check = start
    while True:
        result = await delivery.poll(USER_ID, "phone", last_check)
        pages.append(result)
        last_check = result.next_check_timestamp
        if not result.has_more:
            break

    assert [len(p.events) for p in pages] == [20, 20, 5]
    assert [p.has_more for p in pages] == [True, True, False]
    delivered = [e.id for p in pages for e in p.events]
    assert delivered == published


@pytest.mark.asyncio
async def test_first_poll_uses_lookback_window(delivery, clock):
    await delivery.publish_event(USER_ID, "laptop", "stale")
    clock.advance(45)
    await delivery.publish_event(USER_ID, "laptop", "fresh")
    clock.advance(1)

    result = await delivery.poll(USER_ID, "phone")
    assert [e.event_type for e in result.events] == ["fresh"]


@pytest.mark.asyncio
async def test_next_check_timestamp(delivery, clock):
    since = clock.now
    empty = await delivery.poll(USER_ID, "phone", since)
    assert empty.next_check_timestamp == since
    assert empty.has_more is False

    clock.advance(2)
    event = await delivery.publish_event(USER_ID, "laptop", "ping")
    clock.advance(2)
    result = await delivery.poll(USER_ID, "phone", since)
    assert result.next_check_timestamp == event.created_at


@pytest.mark.asyncio
async def test_target_device(delivery, clock):
    start = clock.now
    await delivery.publish_event(USER_ID, "laptop", "open_file", target_device="tablet")
    clock.advance(1)

    assert (await delivery.poll(USER_ID, "phone", start)).events == []
    result = await delivery.poll(USER_ID, "tablet", start)
    assert [e.event_type for e in result.events] == ["open_file"]


@pytest.mark.asyncio
async def test_events_are_per_user(delivery, clock):
    start = clock.now
    await delivery.publish_event("alice", "laptop", "ping")
    clock.advance(1)
    assert (await delivery.poll("bob", "phone", start)).events == []


@pytest.mark.asyncio
async def test_acknowledge(delivery, clock):
    start = clock.now
    event = await delivery.publish_event(USER_ID, "laptop", "ping")
    clock.advance(1)
    await delivery.poll(USER_ID, "phone", start)

    assert await delivery.acknowledge([event.id, event.id], user_id=USER_ID) == 1
    assert await delivery.acknowledge([event.id], user_id=USER_ID) == 0
    assert await delivery.acknowledge([]) == 0
    assert await delivery.acknowledge(["unknown"]) == 0


@pytest.mark.asyncio
async def test_publish_validation(delivery):
    with pytest.raises(ValidationError):
        await delivery.publish_event(USER_ID, "laptop", "")
    with pytest.raises(ValidationError):
        await delivery.publish_event(USER_ID, "laptop", "ping", target_device="laptop")


@pytest.mark.asyncio
async def test_heartbeat_and_poll(delivery, registry, clock):
    start = clock.now
    await delivery.publish_event(USER_ID, "laptop", "ping")
    clock.advance(1)

    device, result = await delivery.heartbeat_and_poll(
        USER_ID, "phone", current_context={"page": "/inbox"}, last_check=start
    )
    assert device.last_heartbeat == clock.now
    assert device.current_context == {"page": "/inbox"}
    assert len(result.events) == 1
    assert [d.device_id for d in await registry.get_active_devices(USER_ID)] == ["phone"]


@pytest.mark.asyncio
async def test_open_connection(delivery, db_session):
    info = await delivery.open_connection(USER_ID, "phone")
    assert info.connection_id.startswith("conn_")
    assert info.page_size == 20
    assert info.lookback_seconds == 30

    device = await DeviceRepositoryImpl(db_session).get(USER_ID, "phone")
    assert device.connection_id == info.connection_id


@pytest.mark.asyncio
async def test_handoff_scenario(db_session, registry, delivery, clock):
    """Laptop works, phone picks up the context, laptop is told."""
    continuity = ContextContinuityService(SnapshotRepositoryImpl(db_session), clock=clock)

    await registry.register_device(USER_ID, "laptop", device_type="desktop")
    await registry.register_device(USER_ID, "phone", device_type="mobile")
    laptop_check = phone_check = clock.now

    await continuity.save_context_snapshot(USER_ID, "laptop", "full_state", {"doc": "plan.md", "line": 88})
    await delivery.publish_event(USER_ID, "laptop", "context_saved")
    clock.advance(1)

    phone_poll = await delivery.poll(USER_ID, "phone", phone_check)
    assert [e.event_type for e in phone_poll.events] == ["context_saved"]
    snapshot = await continuity.get_latest_context(USER_ID, exclude_device_id="phone")
    assert snapshot.context_data == {"doc": "plan.md", "line": 88}

    await delivery.publish_event(USER_ID, "phone", "context_resumed", {"doc": "plan.md"})
    clock.advance(1)
    assert (await delivery.poll(USER_ID, "phone", phone_poll.next_check_timestamp)).events == []
    laptop_poll = await delivery.poll(USER_ID, "laptop", laptop_check)
    assert [e.event_type for e in laptop_poll.events] == ["context_resumed"]

    devices = await registry.get_active_devices(USER_ID)
    assert {d.device_id for d in devices} == {"laptop", "phone"}


@pytest.mark.asyncio
async def test_blank_target_device_rejected(delivery, clock):
    start = clock.now
    with pytest.raises(ValidationError):
        await delivery.publish_event(USER_ID, "laptop", "open_file", target_device="")
    clock.advance(1)
    assert (await delivery.poll(USER_ID, "phone", start)).events == []


@pytest.mark.asyncio
async def test_acknowledge_requires_delivery(delivery, clock):
    start = clock.now
    event = await delivery.publish_event(USER_ID, "laptop", "ping")
    assert await delivery.acknowledge([event.id], user_id=USER_ID) == 0

    clock.advance(1)
    result = await delivery.poll(USER_ID, "phone", start)
    assert result.events[0].acknowledged is False
    assert await delivery.acknowledge([event.id], user_id=USER_ID) == 1


@pytest.mark.asyncio
async def test_row_claimed_by_concurrent_poller_is_skipped(db_session, delivery, clock, monkeypatch):
    """A row flipped between the SELECT and the UPDATE is not returned a second time."""
    start = clock.now
    taken = await delivery.publish_event(USER_ID, "laptop", "first")
    clock.advance(1)
    kept = await delivery.publish_event(USER_ID, "laptop", "second")
    clock.advance(1)

    real_execute = db_session.execute
    calls = []

    async def execute(statement, *args, **kwargs):
        result = await real_execute(statement, *args, **kwargs)
        calls.append(statement)
        if len(calls) == 1:
            # Another poller delivers "first" right after our SELECT.
            await real_execute(
                update(DeviceNotificationModel)
                .where(DeviceNotificationModel.id == taken.id)
                .values(delivered=True, delivered_at=clock.now)
            )
        return result

    monkeypatch.setattr(db_session, "execute", execute)
    result = await delivery.poll(USER_ID, "tablet", start)
    monkeypatch.undo()

    assert [e.id for e in result.events] == [kept.id]
    assert (await delivery.poll(USER_ID, "phone", start)).events == []


@pytest.mark.asyncio
async def test_transfer_session_uses_latest_snapshot(db_session, registry, delivery, clock):
    continuity = ContextContinuityService(SnapshotRepositoryImpl(db_session), clock=clock)
    delivery.continuity = continuity
    start = clock.now
    await registry.send_heartbeat(USER_ID, "laptop", current_context={"doc": "old.md"})
    snapshot_id = await continuity.save_context_snapshot(USER_ID, "laptop", "full_state", {"doc": "plan.md"})
    clock.advance(1)

    event = await delivery.transfer_session(USER_ID, "laptop", "phone")
    assert event.event_type == "session_transferred"
    assert event.target_device == "phone"
    assert event.event_data["source"] == "snapshot"
    assert event.event_data["snapshot_id"] == snapshot_id
    assert event.event_data["context"] == {"doc": "plan.md"}
    clock.advance(1)

    assert (await delivery.poll(USER_ID, "tablet", start)).events == []
    received = await delivery.poll(USER_ID, "phone", start)
    assert [e.id for e in received.events] == [event.id]


@pytest.mark.asyncio
async def test_transfer_session_falls_back_to_heartbeat_context(registry, delivery):
    await registry.send_heartbeat(USER_ID, "laptop", current_context={"route": "/inbox"})
    event = await delivery.transfer_session(USER_ID, "laptop", "phone")
    assert event.event_data["source"] == "heartbeat"
    assert event.event_data["snapshot_id"] is None
    assert event.event_data["context"] == {"route": "/inbox"}


@pytest.mark.asyncio
async def test_transfer_session_errors(registry, delivery):
    with pytest.raises(NotFoundError):
        await delivery.transfer_session(USER_ID, "ghost", "phone")
    await registry.register_device(USER_ID, "laptop", device_type="desktop")
    with pytest.raises(NotFoundError):
        await delivery.transfer_session(USER_ID, "laptop", "phone")
    with pytest.raises(ValidationError):
        await delivery.transfer_session(USER_ID, "laptop", "laptop")
    with pytest.raises(ValidationError):
        await delivery.transfer_session(USER_ID, "laptop", "")
