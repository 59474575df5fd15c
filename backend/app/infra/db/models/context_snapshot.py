"""Context snapshot database model."""
from sqlalchemy import Column, DateTime, Index, String

from app.domain.continuity.models import ContextSnapshot as ContextSnapshotEntity, SnapshotType
from app.infra.db.base import Base
from app.infra.db.models.types import JSONBType


class ContextSnapshotModel(Base):
    """Append-only handoff snapshot; never updated."""

    __tablename__ = "context_snapshots"
    __table_args__ = (
        Index("ix_context_snapshots_user_created", "user_id", "created_at"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False)
    device_id = Column(String, nullable=False)
    snapshot_type = Column(String, nullable=False)  # full_state | partial
    context_data = Column(JSONBType, nullable=True)
    # "metadata" is reserved on declarative classes
    snapshot_metadata = Column("metadata", JSONBType, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False)

    def to_entity(self) -> ContextSnapshotEntity:
        """Convert to domain entity."""
        return ContextSnapshotEntity(
            id=self.id,
            user_id=self.user_id,
            device_id=self.device_id,
            snapshot_type=SnapshotType(self.snapshot_type),
            context_data=self.context_data,
            metadata=self.snapshot_metadata or {},
            created_at=self.created_at,
        )

    @classmethod
    def from_entity(cls, entity: ContextSnapshotEntity) -> "ContextSnapshotModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            device_id=entity.device_id,
            snapshot_type=entity.snapshot_type.value,
            context_data=entity.context_data,
            snapshot_metadata=entity.metadata,
            created_at=entity.created_at,
        )
