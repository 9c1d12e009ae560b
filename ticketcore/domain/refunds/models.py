from ticketcore.core.database import Base
from enum import Enum
from decimal import Decimal
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Identity, Text, ForeignKey, Numeric, TIMESTAMP, func, Enum as SQLEnum, CheckConstraint, Index, \
    text


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PROCESSED = "PROCESSED"


class RefundPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RefundReason(str, Enum):
    EVENT_CANCELLED = "Event cancelled by organizer"
    UNABLE_TO_ATTEND = "Unable to attend"
    DUPLICATE_BOOKING = "Duplicate booking"
    EVENT_CHANGED = "Event details changed significantly"
    MEDICAL_EMERGENCY = "Medical emergency"
    TRAVEL_RESTRICTIONS = "Travel restrictions"
    OTHER = "Other"


class RefundRequest(Base):
    __tablename__ = "refund_requests"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id", ondelete="RESTRICT"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False, index=True)
    reason: Mapped[RefundReason] = mapped_column(
        SQLEnum(RefundReason, name="refund_reason", values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    processing_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, server_default="0")
    final_refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[RefundStatus] = mapped_column(SQLEnum(RefundStatus, name="refund_status"),
                                                 nullable=False, server_default=RefundStatus.PENDING.value)
    priority: Mapped[RefundPriority] = mapped_column(SQLEnum(RefundPriority, name="refund_priority"),
                                                     nullable=False, server_default=RefundPriority.MEDIUM.value)
    admin_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    booking: Mapped["Booking"] = relationship(lazy="selectin")

    __table_args__ = (
        CheckConstraint("final_refund_amount >= 0", name="chk_final_refund_nonneg"),
        Index(
            "uq_refund_requests_booking_open",
            "booking_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'APPROVED')")
        ),
    )
