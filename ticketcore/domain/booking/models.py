from ticketcore.core.database import Base
from enum import Enum
from decimal import Decimal
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Identity, Text, ForeignKey, Numeric, TIMESTAMP, Integer, func, Enum as SQLEnum, \
    UniqueConstraint, CheckConstraint, Boolean, Index, text
from ticketcore.domain.events.models import TicketTypeName


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    USED = "USED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    ticket_type: Mapped[TicketTypeName] = mapped_column(
        SQLEnum(TicketTypeName, name="ticket_type_name", values_callable=lambda e: [m.value for m in e],
                create_type=False),
        nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, server_default="0")
    vat: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, server_default="0")
    final_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(SQLEnum(BookingStatus, name="booking_status"),
                                                  nullable=False, server_default=BookingStatus.PENDING.value)
    payment_status: Mapped[PaymentStatus] = mapped_column(SQLEnum(PaymentStatus, name="booking_payment_status"),
                                                          nullable=False, server_default=PaymentStatus.PENDING.value)
    payment_reference: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    gateway_reference: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_fully_checked_in: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    check_in_time: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    checked_in_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    attendees: Mapped[list["BookingAttendee"]] = relationship(
        back_populates="booking", lazy="selectin", order_by="BookingAttendee.position"
    )
    codes: Mapped[list["VerificationCode"]] = relationship(
        back_populates="booking", lazy="selectin", order_by="VerificationCode.ticket_number"
    )
    event: Mapped["Event"] = relationship(lazy="selectin")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("quantity BETWEEN 1 AND 10", name="chk_booking_quantity"),
        CheckConstraint("total_amount >= 0", name="chk_booking_total_nonneg"),
        CheckConstraint("final_amount >= 0", name="chk_booking_final_nonneg"),
        Index(
            "uq_bookings_free_registration_open",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=text("final_amount = 0 AND status IN ('PENDING', 'CONFIRMED')")
        ),
    )

    @property
    def has_used_codes(self) -> bool:
        return any(c.is_used for c in self.codes)


class BookingAttendee(Base):
    __tablename__ = "booking_attendees"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)

    booking: Mapped["Booking"] = relationship(back_populates="attendees", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("booking_id", "position", name="uq_booking_attendee_position"),
    )


class VerificationCode(Base):
    __tablename__ = "verification_codes"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="RESTRICT"), nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    code_hash: Mapped[str] = mapped_column(Text, nullable=False)
    # snapshot at issuance, not linked to booking_attendees
    attendee_name: Mapped[str] = mapped_column(Text, nullable=False)
    attendee_email: Mapped[str] = mapped_column(Text, nullable=False)
    attendee_phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    used_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    used_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    booking: Mapped["Booking"] = relationship(back_populates="codes", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("event_id", "code", name="uq_event_verification_code"),
        UniqueConstraint("booking_id", "ticket_number", name="uq_booking_ticket_number"),
        CheckConstraint("char_length(code) = 10", name="chk_code_length"),
        CheckConstraint("(is_used AND used_at IS NOT NULL) OR (NOT is_used AND used_at IS NULL)",
                        name="chk_code_used_at"),
    )
