"""Sync queue repository implementation."""
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.continuity.models import SyncQueueEntry, SyncStatus
from app.domain.continuity.repositories import SyncQueueRepository
from app.infra.db.errors import store_errors
from app.infra.db.models.sync_queue import SyncCompletionModel, SyncQueueModel


class SyncQueueRepositoryImpl(SyncQueueRepository):
    """Sync queue repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, entry: SyncQueueEntry) -> SyncQueueEntry:
        """Append a pending entry."""
        async with store_errors(self.session, "sync enqueue"):
            model = SyncQueueModel.from_entity(entry)
            self.session.add(model)
            await self.session.commit()
            await self.session.refresh(model)
        return model.to_entity()

    async def get(self, sync_id: str) -> Optional[SyncQueueEntry]:
        """Get an entry by id."""
        async with store_errors(self.session, "sync lookup"):
            result = await self.session.execute(
                select(SyncQueueModel)
                .where(SyncQueueModel.id == sync_id)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_pending_for_device(
        self, device_id: str, user_id: Optional[str] = None
    ) -> list[SyncQueueEntry]:
        """Pending entries addressed to device_id or broadcast, not sent by it, not completed by it."""
        completed_here = select(SyncCompletionModel.sync_id).where(
            SyncCompletionModel.device_id == device_id
        )
        q = select(SyncQueueModel).where(
            SyncQueueModel.status == SyncStatus.PENDING.value,
            or_(
                SyncQueueModel.to_device_id == device_id,
                SyncQueueModel.to_device_id.is_(None),
            ),
            SyncQueueModel.from_device_id != device_id,
            SyncQueueModel.id.not_in(completed_here),
        )
        if user_id is not None:
            q = q.where(SyncQueueModel.user_id == user_id)
        q = q.order_by(SyncQueueModel.priority.desc(), SyncQueueModel.created_at.asc())
        async with store_errors(self.session, "pending sync listing"):
            result = await self.session.execute(q)
            models = result.scalars().all()
        return [m.to_entity() for m in models]

    async def mark_completed(self, sync_id: str, now: datetime) -> bool:
        """pending -> completed; only the first call changes anything."""
        async with store_errors(self.session, "sync completion"):
            result = await self.session.execute(
                update(SyncQueueModel)
                .where(
                    SyncQueueModel.id == sync_id,
                    SyncQueueModel.status == SyncStatus.PENDING.value,
                )
                .values(status=SyncStatus.COMPLETED.value, completed_at=now)
            )
            await self.session.commit()
        return result.rowcount > 0

    async def record_device_completion(self, sync_id: str, device_id: str, now: datetime) -> bool:
        """Insert a (sync_id, device_id) completion row; False when it already existed."""
        async with store_errors(self.session, "broadcast completion"):
            existing = await self.session.execute(
                select(SyncCompletionModel.id).where(
                    SyncCompletionModel.sync_id == sync_id,
                    SyncCompletionModel.device_id == device_id,
                )
            )
            if existing.first() is not None:
                return False
            self.session.add(SyncCompletionModel(sync_id=sync_id, device_id=device_id, completed_at=now))
            try:
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                return False
        return True
