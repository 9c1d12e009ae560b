"""initial schema

Revision ID: 3b1e7c9d2a41
Revises:
Create Date: 2026-10-18 10:12:44.381920
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3b1e7c9d2a41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


actor_role = postgresql.ENUM("BUYER", "ORGANIZER", "STAFF", name="actor_role", create_type=False)
ticket_type_name = postgresql.ENUM(
    "VIP", "Regular", "Premium", "Standard", "Early Bird", "Free", name="ticket_type_name", create_type=False
)
booking_status = postgresql.ENUM(
    "PENDING", "CONFIRMED", "CANCELLED", "REFUNDED", "USED", name="booking_status", create_type=False
)
booking_payment_status = postgresql.ENUM(
    "PENDING", "PAID", "FAILED", "REFUNDED", name="booking_payment_status", create_type=False
)
refund_status = postgresql.ENUM("PENDING", "APPROVED", "REJECTED", "PROCESSED", name="refund_status", create_type=False)
refund_priority = postgresql.ENUM("LOW", "MEDIUM", "HIGH", "URGENT", name="refund_priority", create_type=False)
refund_reason = postgresql.ENUM(
    "Event cancelled by organizer", "Unable to attend", "Duplicate booking", "Event details changed significantly",
    "Medical emergency", "Travel restrictions", "Other",
    name="refund_reason", create_type=False
)

ENUMS = (actor_role, ticket_type_name, booking_status, booking_payment_status, refund_status, refund_priority,
         refund_reason)


def _ts(name: str, nullable: bool = False, default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        nullable=nullable,
        server_default=sa.text("now()") if default else None
    )


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("phone_number", sa.Text(), nullable=True),
        sa.Column("role", actor_role, nullable=False, server_default="BUYER"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("timezone('utc', now())")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("start_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("current_attendees", sa.Integer(), nullable=False, server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("end_date > start_date", name="chk_event_time_range"),
        sa.CheckConstraint("current_attendees >= 0", name="chk_current_attendees_nonneg"),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    op.create_table(
        "event_ticket_types",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", ticket_type_name, nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("sold", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("event_id", "name", name="uq_event_ticket_type_name"),
        sa.CheckConstraint("price >= 0", name="chk_ticket_price"),
        sa.CheckConstraint("quantity >= 0", name="chk_ticket_quantity"),
        sa.CheckConstraint("sold >= 0 AND sold <= quantity", name="chk_ticket_sold_range"),
    )
    op.create_index("ix_event_ticket_types_event_id", "event_ticket_types", ["event_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("ticket_type", ticket_type_name, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("vat", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("final_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", booking_status, nullable=False, server_default="PENDING"),
        sa.Column("payment_status", booking_payment_status, nullable=False, server_default="PENDING"),
        sa.Column("payment_reference", sa.Text(), nullable=False, unique=True),
        sa.Column("gateway_reference", sa.Text(), nullable=True),
        sa.Column("is_fully_checked_in", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts("check_in_time", nullable=True, default=False),
        sa.Column("checked_in_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        _ts("cancelled_at", nullable=True, default=False),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        _ts("refunded_at", nullable=True, default=False),
        sa.Column("version", sa.Integer(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("quantity BETWEEN 1 AND 10", name="chk_booking_quantity"),
        sa.CheckConstraint("total_amount >= 0", name="chk_booking_total_nonneg"),
        sa.CheckConstraint("final_amount >= 0", name="chk_booking_final_nonneg"),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])

    op.create_table(
        "booking_attendees",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.UniqueConstraint("booking_id", "position", name="uq_booking_attendee_position"),
    )
    op.create_index("ix_booking_attendees_booking_id", "booking_attendees", ["booking_id"])

    op.create_table(
        "verification_codes",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("ticket_number", sa.Integer(), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("code_hash", sa.Text(), nullable=False),
        sa.Column("attendee_name", sa.Text(), nullable=False),
        sa.Column("attendee_email", sa.Text(), nullable=False),
        sa.Column("attendee_phone", sa.Text(), nullable=True),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts("used_at", nullable=True, default=False),
        sa.Column("used_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint("event_id", "code", name="uq_event_verification_code"),
        sa.UniqueConstraint("booking_id", "ticket_number", name="uq_booking_ticket_number"),
        sa.CheckConstraint("char_length(code) = 10", name="chk_code_length"),
        sa.CheckConstraint("(is_used AND used_at IS NOT NULL) OR (NOT is_used AND used_at IS NULL)",
                           name="chk_code_used_at"),
    )
    op.create_index("ix_verification_codes_booking_id", "verification_codes", ["booking_id"])

    op.create_table(
        "refund_requests",
        sa.Column("id", sa.Integer(), sa.Identity(always=True), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("reason", refund_reason, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("processing_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("final_refund_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", refund_status, nullable=False, server_default="PENDING"),
        sa.Column("priority", refund_priority, nullable=False, server_default="MEDIUM"),
        sa.Column("admin_response", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _ts("resolved_at", nullable=True, default=False),
        _ts("processed_at", nullable=True, default=False),
        _ts("created_at"),
        sa.CheckConstraint("final_refund_amount >= 0", name="chk_final_refund_nonneg"),
    )
    op.create_index("ix_refund_requests_booking_id", "refund_requests", ["booking_id"])
    op.create_index("ix_refund_requests_user_id", "refund_requests", ["user_id"])
    op.create_index("ix_refund_requests_event_id", "refund_requests", ["event_id"])
    op.create_index(
        "uq_refund_requests_booking_open",
        "refund_requests",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'APPROVED')")
    )


def downgrade() -> None:
    op.drop_table("refund_requests")
    op.drop_table("verification_codes")
    op.drop_table("booking_attendees")
    op.drop_table("bookings")
    op.drop_table("event_ticket_types")
    op.drop_table("events")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
