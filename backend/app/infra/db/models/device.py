"""Device database model (identity + liveness)."""
from sqlalchemy import Boolean, Column, DateTime, Index, String, UniqueConstraint

from app.domain.continuity.models import Device as DeviceEntity, DeviceType
from app.infra.db.base import Base
from app.infra.db.models.types import JSONBType


class DeviceModel(Base):
    """One client install of a user. Unique on (device_id, user_id)."""

    __tablename__ = "continuity_devices"
    __table_args__ = (
        UniqueConstraint("device_id", "user_id", name="uq_continuity_devices_device_user"),
        Index("ix_continuity_devices_user_heartbeat", "user_id", "last_heartbeat"),
    )

    id = Column(String, primary_key=True)
    device_id = Column(String, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    device_type = Column(String, nullable=False, default=DeviceType.UNKNOWN.value)  # desktop|mobile|tablet|unknown
    device_name = Column(String, nullable=True)
    browser_info = Column(String, nullable=True)
    last_heartbeat = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)  # cached; liveness is derived at read time
    current_context = Column(JSONBType, nullable=True)
    connection_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def to_entity(self) -> DeviceEntity:
        """Convert to domain entity."""
        return DeviceEntity(
            id=self.id,
            device_id=self.device_id,
            user_id=self.user_id,
            device_type=DeviceType(self.device_type),
            device_name=self.device_name,
            browser_info=self.browser_info,
            last_heartbeat=self.last_heartbeat,
            is_active=self.is_active,
            current_context=self.current_context,
            connection_id=self.connection_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: DeviceEntity) -> "DeviceModel":
        """Create from domain entity."""
        model = cls(id=entity.id, device_id=entity.device_id, user_id=entity.user_id)
        model.apply(entity)
        model.created_at = entity.created_at
        return model

    def apply(self, entity: DeviceEntity) -> None:
        """Copy the mutable fields of an entity onto this row (last write wins)."""
        self.device_type = entity.device_type.value
        self.device_name = entity.device_name
        self.browser_info = entity.browser_info
        self.last_heartbeat = entity.last_heartbeat
        self.is_active = entity.is_active
        self.current_context = entity.current_context
        self.connection_id = entity.connection_id
        self.updated_at = entity.updated_at
