"""Visit scheduler schema: catalog, roster, calendar, bookings, history.

Revision ID: 001
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create scheduling tables."""

    # ========================================================================
    # SERVICE CATALOG
    # ========================================================================

    op.create_table(
        "services",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("site_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_services"),
    )
    op.create_index("ix_services_site_id", "services", ["site_id"])
    op.create_index("ix_services_created_at", "services", ["created_at"])

    op.create_table(
        "service_variants",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("service_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("follow_up_name", sa.String(150), nullable=True),
        sa.Column("follow_up_wait_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "follow_up_duration_minutes", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("follow_up_service_id", postgresql.UUID(as_uuid=False), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["service_id"],
            ["services.id"],
            name="fk_service_variants_service_id_services",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["follow_up_service_id"],
            ["services.id"],
            name="fk_service_variants_follow_up_service_id_services",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_service_variants"),
    )
    op.create_index("ix_service_variants_service_id", "service_variants", ["service_id"])
    op.create_index("ix_service_variants_created_at", "service_variants", ["created_at"])

    # ========================================================================
    # ROSTER AND CALENDAR
    # ========================================================================

    op.create_table(
        "workers",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("site_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("capabilities", sa.JSON(), nullable=False),
        sa.Column("all_services", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("weekly_availability", sa.JSON(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_workers"),
    )
    op.create_index("ix_workers_site_id", "workers", ["site_id"])
    op.create_index("ix_workers_created_at", "workers", ["created_at"])

    op.create_table(
        "business_days",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("site_id", sa.String(64), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("open_time", sa.Time(), nullable=False),
        sa.Column("close_time", sa.Time(), nullable=False),
        sa.Column("breaks", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_business_days"),
        sa.UniqueConstraint("site_id", "day_of_week", name="uq_business_days_site_id"),
    )
    op.create_index("ix_business_days_site_id", "business_days", ["site_id"])
    op.create_index("ix_business_days_created_at", "business_days", ["created_at"])

    op.create_table(
        "closed_dates",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("site_id", sa.String(64), nullable=False),
        sa.Column("closed_on", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_closed_dates"),
        sa.UniqueConstraint("site_id", "closed_on", name="uq_closed_dates_site_id"),
    )
    op.create_index("ix_closed_dates_site_id", "closed_dates", ["site_id"])
    op.create_index("ix_closed_dates_created_at", "closed_dates", ["created_at"])

    # ========================================================================
    # BOOKINGS
    # ========================================================================

    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("site_id", sa.String(64), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="confirmed"),
        sa.Column("service_id", sa.String(64), nullable=True),
        sa.Column("variant_id", sa.String(64), nullable=True),
        sa.Column("service_name", sa.String(150), nullable=True),
        sa.Column("worker_id", sa.String(64), nullable=True),
        sa.Column("worker_name", sa.String(150), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("phase", sa.Integer(), nullable=True),
        sa.Column("is_follow_up", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("phases", sa.JSON(), nullable=True),
        sa.Column("legacy_date", sa.String(10), nullable=True),
        sa.Column("legacy_time", sa.String(5), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("wait_minutes", sa.Integer(), nullable=True),
        sa.Column("secondary_worker_id", sa.String(64), nullable=True),
        sa.Column("secondary_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("secondary_start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("secondary_end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("visit_group_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("booking_group_id", sa.String(64), nullable=True),
        sa.Column("parent_booking_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("customer_key", sa.String(64), nullable=True),
        sa.Column("client_id", sa.String(64), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("customer_name", sa.String(150), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_reason", sa.String(30), nullable=True),
        sa.Column("cancellation_note", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
    )
    for column in (
        "site_id",
        "booking_date",
        "status",
        "worker_id",
        "visit_group_id",
        "booking_group_id",
        "parent_booking_id",
        "customer_key",
        "is_archived",
        "created_at",
    ):
        op.create_index(f"ix_bookings_{column}", "bookings", [column])

    op.create_table(
        "customer_history_entries",
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("site_id", sa.String(64), nullable=False),
        sa.Column("customer_key", sa.String(64), nullable=False),
        sa.Column("booking_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("variant_id", sa.String(64), nullable=True),
        sa.Column("reason", sa.String(30), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("snapshot", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("key", name="pk_customer_history_entries"),
    )
    op.create_index(
        "ix_customer_history_entries_site_id", "customer_history_entries", ["site_id"]
    )
    op.create_index(
        "ix_customer_history_entries_customer_key",
        "customer_history_entries",
        ["customer_key"],
    )
    op.create_index(
        "ix_customer_history_entries_created_at",
        "customer_history_entries",
        ["created_at"],
    )


def downgrade() -> None:
    """Drop scheduling tables."""
    op.drop_table("customer_history_entries")
    op.drop_table("bookings")
    op.drop_table("closed_dates")
    op.drop_table("business_days")
    op.drop_table("workers")
    op.drop_table("service_variants")
    op.drop_table("services")
