from decimal import Decimal
from sqlalchemy.orm import mapped_column, Mapped, relationship
from sqlalchemy import Identity, Text, Integer, ForeignKey, CheckConstraint, UniqueConstraint, Boolean, TIMESTAMP, \
    Numeric, func, Enum as SQLEnum, text
from ticketcore.core.database import Base
from datetime import datetime
import enum


class TicketTypeName(str, enum.Enum):
    VIP = "VIP"
    REGULAR = "Regular"
    PREMIUM = "Premium"
    STANDARD = "Standard"
    EARLY_BIRD = "Early Bird"
    FREE = "Free"


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    organizer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete='RESTRICT'),
        nullable=False,
        index=True
    )
    start_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    current_attendees: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    ticket_types: Mapped[list['EventTicketType']] = relationship(back_populates='event', lazy='selectin')

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="chk_event_time_range"),
        CheckConstraint("current_attendees >= 0", name="chk_current_attendees_nonneg"),
    )

    def ticket_type(self, name: str) -> 'EventTicketType | None':
        return next((tt for tt in self.ticket_types if tt.name == name), None)


class EventTicketType(Base):
    __tablename__ = 'event_ticket_types'

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[TicketTypeName] = mapped_column(
        SQLEnum(TicketTypeName, name="ticket_type_name", values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    event: Mapped['Event'] = relationship(back_populates='ticket_types', lazy='selectin')

    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_event_ticket_type_name"),
        CheckConstraint("price >= 0", name="chk_ticket_price"),
        CheckConstraint("quantity >= 0", name="chk_ticket_quantity"),
        CheckConstraint("sold >= 0 AND sold <= quantity", name="chk_ticket_sold_range"),
    )

    @property
    def available(self) -> int:
        return max(0, self.quantity - self.sold)
