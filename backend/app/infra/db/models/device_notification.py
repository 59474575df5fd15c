"""Device notification database model."""
from sqlalchemy import Boolean, Column, DateTime, Index, String

from app.domain.continuity.models import DeviceNotification as DeviceNotificationEntity
from app.infra.db.base import Base
from app.infra.db.models.types import JSONBType


class DeviceNotificationModel(Base):
    """Cross-device event; delivered once by the first eligible poll."""

    __tablename__ = "device_notifications"
    __table_args__ = (
        Index("ix_device_notifications_user_delivered_created", "user_id", "delivered", "created_at"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False)
    source_device = Column(String, nullable=False)
    target_device = Column(String, nullable=True)  # NULL = any device but the source
    event_type = Column(String, nullable=False)
    event_data = Column(JSONBType, nullable=True)
    created_at = Column(DateTime, nullable=False)
    delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime, nullable=True)
    acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(DateTime, nullable=True)

    def to_entity(self) -> DeviceNotificationEntity:
        """Convert to domain entity."""
        return DeviceNotificationEntity(
            id=self.id,
            user_id=self.user_id,
            source_device=self.source_device,
            target_device=self.target_device,
            event_type=self.event_type,
            event_data=self.event_data,
            created_at=self.created_at,
            delivered=self.delivered,
            delivered_at=self.delivered_at,
            acknowledged=self.acknowledged,
            acknowledged_at=self.acknowledged_at,
        )

    @classmethod
    def from_entity(cls, entity: DeviceNotificationEntity) -> "DeviceNotificationModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            source_device=entity.source_device,
            target_device=entity.target_device,
            event_type=entity.event_type,
            event_data=entity.event_data,
            created_at=entity.created_at,
            delivered=entity.delivered,
            delivered_at=entity.delivered_at,
            acknowledged=entity.acknowledged,
            acknowledged_at=entity.acknowledged_at,
        )
