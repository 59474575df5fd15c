"""Context snapshot repository implementation."""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.continuity.models import ContextSnapshot
from app.domain.continuity.repositories import SnapshotRepository
from app.infra.db.errors import store_errors
from app.infra.db.models.context_snapshot import ContextSnapshotModel


class SnapshotRepositoryImpl(SnapshotRepository):
    """Context snapshot repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, snapshot: ContextSnapshot) -> ContextSnapshot:
        """Append a snapshot."""
        async with store_errors(self.session, "snapshot save"):
            model = ContextSnapshotModel.from_entity(snapshot)
            self.session.add(model)
            await self.session.commit()
            await self.session.refresh(model)
        return model.to_entity()

    async def get_latest(
        self, user_id: str, exclude_device_id: Optional[str] = None
    ) -> Optional[ContextSnapshot]:
        """Most recent snapshot for a user, optionally not sourced from exclude_device_id."""
        q = select(ContextSnapshotModel).where(ContextSnapshotModel.user_id == user_id)
        if exclude_device_id is not None:
            q = q.where(ContextSnapshotModel.device_id != exclude_device_id)
        q = q.order_by(ContextSnapshotModel.created_at.desc()).limit(1)
        async with store_errors(self.session, "snapshot lookup"):
            result = await self.session.execute(q)
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_latest_for_device(self, user_id: str, device_id: str) -> Optional[ContextSnapshot]:
        """Newest snapshot saved by one device of a user."""
        q = (
            select(ContextSnapshotModel)
            .where(
                ContextSnapshotModel.user_id == user_id,
                ContextSnapshotModel.device_id == device_id,
            )
            .order_by(ContextSnapshotModel.created_at.desc())
            .limit(1)
        )
        async with store_errors(self.session, "device snapshot lookup"):
            result = await self.session.execute(q)
            model = result.scalar_one_or_none()
        return model.to_entity() if model else None
