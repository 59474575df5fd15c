"""Sync queue database models."""
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint

from app.domain.continuity.models import SyncQueueEntry as SyncQueueEntryEntity, SyncStatus, SyncType
from app.infra.db.base import Base
from app.infra.db.models.types import JSONBType


class SyncQueueModel(Base):
    """Sync payload; to_device_id NULL means every other device of the user."""

    __tablename__ = "sync_queue"
    __table_args__ = (
        Index("ix_sync_queue_status_to_device", "status", "to_device_id"),
        Index("ix_sync_queue_user_created", "user_id", "created_at"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False)
    from_device_id = Column(String, nullable=False)
    to_device_id = Column(String, nullable=True)
    sync_type = Column(String, nullable=False, default=SyncType.CONTEXT.value)
    priority = Column(Integer, nullable=False, default=0)
    payload = Column(JSONBType, nullable=True)
    status = Column(String, nullable=False, default=SyncStatus.PENDING.value)  # pending | completed
    created_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    def to_entity(self) -> SyncQueueEntryEntity:
        """Convert to domain entity."""
        return SyncQueueEntryEntity(
            id=self.id,
            user_id=self.user_id,
            from_device_id=self.from_device_id,
            to_device_id=self.to_device_id,
            sync_type=SyncType(self.sync_type),
            priority=self.priority or 0,
            payload=self.payload,
            status=SyncStatus(self.status),
            created_at=self.created_at,
            completed_at=self.completed_at,
        )

    @classmethod
    def from_entity(cls, entity: SyncQueueEntryEntity) -> "SyncQueueModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            from_device_id=entity.from_device_id,
            to_device_id=entity.to_device_id,
            sync_type=entity.sync_type.value,
            priority=entity.priority,
            payload=entity.payload,
            status=entity.status.value,
            created_at=entity.created_at,
            completed_at=entity.completed_at,
        )


class SyncCompletionModel(Base):
    """Per-device completion of a broadcast sync entry."""

    __tablename__ = "sync_completions"
    __table_args__ = (
        UniqueConstraint("sync_id", "device_id", name="uq_sync_completions_sync_device"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_id = Column(String, ForeignKey("sync_queue.id", ondelete="CASCADE"), nullable=False)
    device_id = Column(String, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=False)
