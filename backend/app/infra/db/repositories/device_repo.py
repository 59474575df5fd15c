"""Device repository implementation."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import ConflictError
from app.domain.continuity.models import Device
from app.domain.continuity.repositories import DeviceRepository
from app.infra.db.errors import store_errors
from app.infra.db.models.device import DeviceModel

logger = logging.getLogger(__name__)


class DeviceRepositoryImpl(DeviceRepository):
    """Device repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_model(self, user_id: str, device_id: str) -> Optional[DeviceModel]:
        result = await self.session.execute(
            select(DeviceModel).where(
                DeviceModel.user_id == user_id,
                DeviceModel.device_id == device_id,
            )
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: str, device_id: str) -> Optional[Device]:
        """Get a device of a user."""
        async with store_errors(self.session, "device lookup"):
            model = await self._get_model(user_id, device_id)
        return model.to_entity() if model else None

    async def upsert(self, device: Device) -> Device:
        """Insert or overwrite by (device_id, user_id).

        Two first heartbeats from the same device (e.g. duplicate tabs) can both
        try to insert; the loser falls back to updating the winner's row.
        """
        async with store_errors(self.session, "device upsert"):
            row = await self._get_model(device.user_id, device.device_id)
            if row:
                row.apply(device)
                await self.session.commit()
                await self.session.refresh(row)
                return row.to_entity()

            model = DeviceModel.from_entity(device)
            self.session.add(model)
            try:
                await self.session.commit()
            except IntegrityError:
                await self.session.rollback()
                logger.debug("Concurrent insert for device %s; updating instead", device.device_id)
                row = await self._get_model(device.user_id, device.device_id)
                if row is None:
                    raise ConflictError(f"Device {device.device_id} could not be stored")
                row.apply(device)
                await self.session.commit()
                await self.session.refresh(row)
                return row.to_entity()
            await self.session.refresh(model)
            return model.to_entity()

    async def list_by_user(self, user_id: str) -> list[Device]:
        """List a user's devices, most recent heartbeat first."""
        async with store_errors(self.session, "device listing"):
            result = await self.session.execute(
                select(DeviceModel)
                .where(DeviceModel.user_id == user_id)
                .order_by(DeviceModel.last_heartbeat.desc())
            )
            models = result.scalars().all()
        return [m.to_entity() for m in models]

    async def deactivate(self, user_id: str, device_id: str, now: datetime) -> bool:
        """Clear the cached active flag and connection id. Returns True if the device exists."""
        async with store_errors(self.session, "device deactivate"):
            result = await self.session.execute(
                update(DeviceModel)
                .where(
                    DeviceModel.user_id == user_id,
                    DeviceModel.device_id == device_id,
                )
                .values(is_active=False, connection_id=None, updated_at=now)
            )
            await self.session.commit()
        return result.rowcount > 0
