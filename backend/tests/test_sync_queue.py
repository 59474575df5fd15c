"""Tests for the sync queue (targeted and broadcast entries)."""
import pytest

from app.domain.common.errors import NotFoundError, ValidationError
from app.domain.continuity.models import SyncStatus, SyncType
from app.domain.continuity.services import SyncQueueService
from app.infra.db.repositories.sync_queue_repo import SyncQueueRepositoryImpl

from conftest import USER_ID


@pytest.fixture
def sync(db_session, clock):
    return SyncQueueService(SyncQueueRepositoryImpl(db_session), clock=clock)


@pytest.mark.asyncio
async def test_targeted_entry_visible_only_to_target(sync):
    sync_id = await sync.queue_sync(USER_ID, "laptop", {"type": "file", "name": "a.txt"}, to_device_id="phone")

    pending = await sync.get_pending_syncs("phone")
    assert [e.id for e in pending] == [sync_id]
    assert pending[0].sync_type == SyncType.FILE
    assert pending[0].status == SyncStatus.PENDING
    assert await sync.get_pending_syncs("tablet") == []
    assert await sync.get_pending_syncs("laptop") == []


@pytest.mark.asyncio
async def test_broadcast_visible_to_every_other_device(sync):
    sync_id = await sync.queue_sync(USER_ID, "laptop", {"route": "/inbox"})

    assert [e.id for e in await sync.get_pending_syncs("phone")] == [sync_id]
    assert [e.id for e in await sync.get_pending_syncs("tablet")] == [sync_id]
    assert await sync.get_pending_syncs("laptop") == []


@pytest.mark.asyncio
async def test_broadcast_completion_is_per_device(sync):
    sync_id = await sync.queue_sync(USER_ID, "laptop", {"route": "/inbox"})

    await sync.mark_sync_completed(sync_id, device_id="phone")
    assert await sync.get_pending_syncs("phone") == []
    assert [e.id for e in await sync.get_pending_syncs("tablet")] == [sync_id]

    # Repeat completion by the same device is a no-op.
    entry = await sync.mark_sync_completed(sync_id, device_id="phone")
    assert entry.status == SyncStatus.PENDING


@pytest.mark.asyncio
async def test_sender_cannot_complete_own_broadcast(sync):
    sync_id = await sync.queue_sync(USER_ID, "laptop", {"route": "/inbox"})
    with pytest.raises(ValidationError):
        await sync.mark_sync_completed(sync_id, device_id="laptop")


@pytest.mark.asyncio
async def test_mark_completed_is_idempotent(sync, clock):
    sync_id = await sync.queue_sync(USER_ID, "laptop", {"k": 1}, to_device_id="phone")
    completed_at = clock.now
    first = await sync.mark_sync_completed(sync_id)
    assert first.status == SyncStatus.COMPLETED
    assert first.completed_at == completed_at

    clock.advance(30)
    second = await sync.mark_sync_completed(sync_id)
    assert second.status == SyncStatus.COMPLETED
    assert second.completed_at == completed_at
    assert await sync.get_pending_syncs("phone") == []


@pytest.mark.asyncio
async def test_completing_broadcast_without_device_closes_it_for_all(sync):
    sync_id = await sync.queue_sync(USER_ID, "laptop", {"k": 1})
    await sync.mark_sync_completed(sync_id)
    assert await sync.get_pending_syncs("phone") == []
    assert await sync.get_pending_syncs("tablet") == []


@pytest.mark.asyncio
async def test_targeted_completion_by_wrong_device(sync):
    sync_id = await sync.queue_sync(USER_ID, "laptop", {"k": 1}, to_device_id="phone")
    with pytest.raises(ValidationError):
        await sync.mark_sync_completed(sync_id, device_id="tablet")


@pytest.mark.asyncio
async def test_unknown_sync_id(sync):
    with pytest.raises(NotFoundError):
        await sync.mark_sync_completed("does-not-exist")


@pytest.mark.asyncio
async def test_other_users_entry_is_not_found(sync):
    sync_id = await sync.queue_sync("alice", "laptop", {"k": 1}, to_device_id="phone")
    with pytest.raises(NotFoundError):
        await sync.mark_sync_completed(sync_id, user_id="bob")
    assert await sync.get_pending_syncs("phone", user_id="bob") == []


@pytest.mark.asyncio
async def test_cannot_target_self(sync):
    with pytest.raises(ValidationError):
        await sync.queue_sync(USER_ID, "laptop", {"k": 1}, to_device_id="laptop")


@pytest.mark.asyncio
async def test_pending_ordered_by_priority_then_age(sync, clock):
    old = await sync.queue_sync(USER_ID, "laptop", {"n": 1})
    clock.advance(1)
    newer = await sync.queue_sync(USER_ID, "laptop", {"n": 2})
    clock.advance(1)
    urgent = await sync.queue_sync(USER_ID, "laptop", {"n": 3, "priority": 5})

    pending = await sync.get_pending_syncs("phone")
    assert [e.id for e in pending] == [urgent, old, newer]
    assert pending[0].priority == 5


@pytest.mark.asyncio
async def test_payload_hints_default(sync):
    sync_id = await sync.queue_sync(USER_ID, "laptop", ["not", "a", "dict"], to_device_id="phone")
    (entry,) = await sync.get_pending_syncs("phone")
    assert entry.id == sync_id
    assert entry.sync_type == SyncType.CONTEXT
    assert entry.priority == 0
    assert entry.payload == ["not", "a", "dict"]


@pytest.mark.asyncio
async def test_blank_target_is_rejected_not_broadcast(sync):
    with pytest.raises(ValidationError):
        await sync.queue_sync(USER_ID, "laptop", {"k": 1}, to_device_id="")
    with pytest.raises(ValidationError):
        await sync.queue_sync(USER_ID, "laptop", {"k": 1}, to_device_id="   ")
    assert await sync.get_pending_syncs("tablet") == []
