"""Initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 10:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("parent", "tutor", "admin", name="role_enum", native_enum=False)
subscription_status_enum = sa.Enum(
    "active", "paused", "canceled", name="subscription_status_enum", native_enum=False,
)
session_status_enum = sa.Enum("scheduled", "completed", "canceled", name="session_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _tutor_fk(table_name: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["tutor_id"], ["users.id"], name=f"fk_{table_name}_tutor_id_users", ondelete="CASCADE",
    )


def upgrade() -> None:
    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "subscriptions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("course_title", sa.String(length=255), nullable=False),
        sa.Column("session_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", subscription_status_enum, nullable=False),
        sa.ForeignKeyConstraint(
            ["parent_id"], ["users.id"], name="fk_subscriptions_parent_id_users", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["tutor_id"], ["users.id"], name="fk_subscriptions_tutor_id_users", ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_subscriptions_parent_id", "subscriptions", ["parent_id"], unique=False)
    op.create_index("ix_subscriptions_tutor_id", "subscriptions", ["tutor_id"], unique=False)

    op.create_table(
        "availability_windows",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _tutor_fk("availability_windows"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_windows_day_of_week_range"),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_windows_window_time_order"),
    )
    op.create_index(
        "ix_availability_windows_tutor_day",
        "availability_windows",
        ["tutor_id", "day_of_week"],
        unique=False,
    )

    op.create_table(
        "time_blocks",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
        _tutor_fk("time_blocks"),
        sa.CheckConstraint("start_at < end_at", name="ck_time_blocks_block_time_order"),
    )
    op.create_index("ix_time_blocks_tutor_start", "time_blocks", ["tutor_id", "start_at"], unique=False)

    op.create_table(
        "tutoring_sessions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("subscription_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", session_status_enum, nullable=False),
        sa.Column("notes", sa.String(length=1024), nullable=True),
        sa.Column("series_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("series_position", sa.Integer(), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.ForeignKeyConstraint(
            ["subscription_id"],
            ["subscriptions.id"],
            name="fk_tutoring_sessions_subscription_id_subscriptions",
            ondelete="CASCADE",
        ),
        _tutor_fk("tutoring_sessions"),
        sa.ForeignKeyConstraint(
            ["parent_id"], ["users.id"], name="fk_tutoring_sessions_parent_id_users", ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_tutoring_sessions_subscription_id", "tutoring_sessions", ["subscription_id"], unique=False,
    )
    op.create_index("ix_tutoring_sessions_parent_id", "tutoring_sessions", ["parent_id"], unique=False)
    op.create_index("ix_tutoring_sessions_status", "tutoring_sessions", ["status"], unique=False)
    op.create_index("ix_tutoring_sessions_series_id", "tutoring_sessions", ["series_id"], unique=False)
    op.create_index(
        "ix_tutoring_sessions_tutor_scheduled",
        "tutoring_sessions",
        ["tutor_id", "scheduled_at"],
        unique=False,
    )

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_tutoring_sessions_tutor_scheduled", table_name="tutoring_sessions")
    op.drop_index("ix_tutoring_sessions_series_id", table_name="tutoring_sessions")
    op.drop_index("ix_tutoring_sessions_status", table_name="tutoring_sessions")
    op.drop_index("ix_tutoring_sessions_parent_id", table_name="tutoring_sessions")
    op.drop_index("ix_tutoring_sessions_subscription_id", table_name="tutoring_sessions")
    op.drop_table("tutoring_sessions")

    op.drop_index("ix_time_blocks_tutor_start", table_name="time_blocks")
    op.drop_table("time_blocks")

    op.drop_index("ix_availability_windows_tutor_day", table_name="availability_windows")
    op.drop_table("availability_windows")

    op.drop_index("ix_subscriptions_tutor_id", table_name="subscriptions")
    op.drop_index("ix_subscriptions_parent_id", table_name="subscriptions")
    op.drop_table("subscriptions")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("roles")
