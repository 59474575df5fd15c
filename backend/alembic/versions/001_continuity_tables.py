"""Continuity tables: devices, context snapshots, sync queue, device notifications.

Revision ID: 001_continuity_tables
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = "001_continuity_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "continuity_devices",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("device_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("device_type", sa.String(), nullable=False, server_default="unknown"),
        sa.Column("device_name", sa.String(), nullable=True),
        sa.Column("browser_info", sa.String(), nullable=True),
        sa.Column("last_heartbeat", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("current_context", JSONB(), nullable=True),
        sa.Column("connection_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("device_id", "user_id", name="uq_continuity_devices_device_user"),
    )
    op.create_index("ix_continuity_devices_user_id", "continuity_devices", ["user_id"], unique=False)
    op.create_index(
        "ix_continuity_devices_user_heartbeat",
        "continuity_devices",
        ["user_id", "last_heartbeat"],
        unique=False,
    )

    op.create_table(
        "context_snapshots",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("device_id", sa.String(), nullable=False),
        sa.Column("snapshot_type", sa.String(), nullable=False),
        sa.Column("context_data", JSONB(), nullable=True),
        sa.Column("metadata", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_context_snapshots_user_created",
        "context_snapshots",
        ["user_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "sync_queue",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("from_device_id", sa.String(), nullable=False),
        sa.Column("to_device_id", sa.String(), nullable=True),
        sa.Column("sync_type", sa.String(), nullable=False, server_default="context"),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payload", JSONB(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_queue_status_to_device", "sync_queue", ["status", "to_device_id"], unique=False)
    op.create_index("ix_sync_queue_user_created", "sync_queue", ["user_id", "created_at"], unique=False)

    op.create_table(
        "sync_completions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("sync_id", sa.String(), nullable=False),
        sa.Column("device_id", sa.String(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["sync_id"], ["sync_queue.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sync_id", "device_id", name="uq_sync_completions_sync_device"),
    )
    op.create_index("ix_sync_completions_device_id", "sync_completions", ["device_id"], unique=False)

    op.create_table(
        "device_notifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("source_device", sa.String(), nullable=False),
        sa.Column("target_device", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("event_data", JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("delivered", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("acknowledged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("acknowledged_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_device_notifications_user_delivered_created",
        "device_notifications",
        ["user_id", "delivered", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_device_notifications_user_delivered_created", table_name="device_notifications")
    op.drop_table("device_notifications")
    op.drop_index("ix_sync_completions_device_id", table_name="sync_completions")
    op.drop_table("sync_completions")
    op.drop_index("ix_sync_queue_user_created", table_name="sync_queue")
    op.drop_index("ix_sync_queue_status_to_device", table_name="sync_queue")
    op.drop_table("sync_queue")
    op.drop_index("ix_context_snapshots_user_created", table_name="context_snapshots")
    op.drop_table("context_snapshots")
    op.drop_index("ix_continuity_devices_user_heartbeat", table_name="continuity_devices")
    op.drop_index("ix_continuity_devices_user_id", table_name="continuity_devices")
    op.drop_table("continuity_devices")
