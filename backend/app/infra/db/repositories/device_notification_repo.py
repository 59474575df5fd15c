"""Device notification repository implementation."""
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.continuity.models import DeviceNotification
from app.domain.continuity.repositories import DeviceNotificationRepository
from app.infra.db.errors import store_errors
from app.infra.db.models.device_notification import DeviceNotificationModel


class DeviceNotificationRepositoryImpl(DeviceNotificationRepository):
    """Device notification repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, notification: DeviceNotification) -> DeviceNotification:
        """Create an undelivered notification."""
        async with store_errors(self.session, "event publish"):
            model = DeviceNotificationModel.from_entity(notification)
            self.session.add(model)
            await self.session.commit()
            await self.session.refresh(model)
        return model.to_entity()

    async def claim_undelivered(
        self,
        user_id: str,
        device_id: str,
        since: datetime,
        limit: int,
        now: datetime,
    ) -> list[DeviceNotification]:
        """Read one page of undelivered events for device_id and flag them delivered.

        The flip is conditional on delivered = false, so a row raced by another
        poller is dropped from this page instead of being returned twice.
        FOR UPDATE SKIP LOCKED is a no-op on SQLite.
        """
        q = (
            select(DeviceNotificationModel)
            .where(
                DeviceNotificationModel.user_id == user_id,
                DeviceNotificationModel.source_device != device_id,
                or_(
                    DeviceNotificationModel.target_device.is_(None),
                    DeviceNotificationModel.target_device == device_id,
                ),
                DeviceNotificationModel.created_at >= since,
                DeviceNotificationModel.delivered.is_(False),
            )
            .order_by(DeviceNotificationModel.created_at.asc(), DeviceNotificationModel.id.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        async with store_errors(self.session, "poll"):
            result = await self.session.execute(q)
            rows = list(result.scalars().all())
            if not rows:
                await self.session.commit()
                return []
            flipped = await self.session.execute(
                update(DeviceNotificationModel)
                .where(
                    DeviceNotificationModel.id.in_([r.id for r in rows]),
                    DeviceNotificationModel.delivered.is_(False),
                )
                .values(delivered=True, delivered_at=now)
                .returning(DeviceNotificationModel.id)
                .execution_options(synchronize_session=False)
            )
            claimed = set(flipped.scalars().all())
            await self.session.commit()
        return [
            r.to_entity().model_copy(update={"delivered": True, "delivered_at": now})
            for r in rows
            if r.id in claimed
        ]

    async def acknowledge(
        self, event_ids: list[str], now: datetime, user_id: Optional[str] = None
    ) -> int:
        """Flag delivered events acknowledged. Undelivered and already-acknowledged rows are left alone."""
        q = (
            update(DeviceNotificationModel)
            .where(
                DeviceNotificationModel.id.in_(event_ids),
                DeviceNotificationModel.delivered.is_(True),
                DeviceNotificationModel.acknowledged.is_(False),
            )
            .values(acknowledged=True, acknowledged_at=now)
            .execution_options(synchronize_session=False)
        )
        if user_id is not None:
            q = q.where(DeviceNotificationModel.user_id == user_id)
        async with store_errors(self.session, "acknowledge"):
            result = await self.session.execute(q)
            await self.session.commit()
        return result.rowcount or 0
