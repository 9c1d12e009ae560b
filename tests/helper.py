from contextlib import asynccontextmanager
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from ticketcore.domain.actors.directory import Actor
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.booking.models import Booking, BookingAttendee, BookingStatus, PaymentStatus, VerificationCode
from ticketcore.domain.events.models import Event, EventTicketType, TicketTypeName
from ticketcore.services import verification_codes


@asynccontextmanager
async def nested_tx():
    yield


def db_with_scalar(mocker, value):
    db = mocker.Mock()
    db.scalar = mocker.AsyncMock(return_value=value)
    return db


def make_db(mocker, *scalars):
    db = mocker.Mock()
    db.info = {}
    db.scalar = mocker.AsyncMock(side_effect=list(scalars)) if scalars else mocker.AsyncMock(return_value=None)
    db.execute = mocker.AsyncMock()
    db.flush = mocker.AsyncMock()
    db.refresh = mocker.AsyncMock()
    db.begin_nested = mocker.Mock(side_effect=lambda: nested_tx())
    return db


def make_actor(actor_id: int = 1, role: ActorRole = ActorRole.BUYER, phone: str | None = None) -> Actor:
    return Actor(
        id=actor_id,
        role=role,
        first_name="Ada",
        last_name="Obi",
        email=f"user{actor_id}@example.com",
        phone=phone
    )


def make_event(
        event_id: int = 1,
        organizer_id: int = 50,
        *,
        approved: bool = True,
        starts_in: timedelta = timedelta(days=7),
        ticket_types: list[EventTicketType] | None = None
) -> Event:
    start = datetime.now(timezone.utc) + starts_in
    return Event(
        id=event_id,
        title="Lagos Jazz Night",
        organizer_id=organizer_id,
        start_date=start,
        end_date=start + timedelta(hours=4),
        approved=approved,
        current_attendees=0,
        ticket_types=ticket_types if ticket_types is not None else [],
    )


def make_ticket_type(
        name: TicketTypeName = TicketTypeName.VIP,
        price: str = "5000",
        quantity: int = 100,
        sold: int = 0
) -> EventTicketType:
    return EventTicketType(name=name, price=Decimal(price), quantity=quantity, sold=sold)


def make_booking(
        booking_id: int = 10,
        *,
        user_id: int = 1,
        event_id: int = 1,
        quantity: int = 2,
        status: BookingStatus = BookingStatus.CONFIRMED,
        payment_reference: str = "SP1700000000000ABCDE",
        final_amount: str = "5268.75",
        with_codes: bool = True
) -> Booking:
    booking = Booking(
        id=booking_id,
        user_id=user_id,
        event_id=event_id,
        ticket_type=TicketTypeName.VIP,
        quantity=quantity,
        total_amount=Decimal("5000.00"),
        platform_fee=Decimal("250.00"),
        vat=Decimal("18.75"),
        final_amount=Decimal(final_amount),
        status=status,
        payment_status=PaymentStatus.PAID if status != BookingStatus.PENDING else PaymentStatus.PENDING,
        payment_reference=payment_reference,
        is_fully_checked_in=False,
        attendees=[
            BookingAttendee(position=i, name=f"Guest {i}", email=f"guest{i}@example.com")
            for i in range(1, quantity + 1)
        ],
        codes=[],
    )
    if with_codes:
        booking.codes = [make_code(booking, i, str(1000000000 + i)) for i in range(1, quantity + 1)]
    return booking


def make_code(booking: Booking, ticket_number: int, code: str, *, code_hash: str | None = None) -> VerificationCode:
    ctx = verification_codes.CodeContext.from_booking(booking)
    return VerificationCode(
        id=100 + ticket_number,
        booking_id=booking.id,
        event_id=booking.event_id,
        ticket_number=ticket_number,
        code=code,
        code_hash=code_hash if code_hash is not None else verification_codes.code_hash(ctx, code),
        attendee_name=f"Guest {ticket_number}",
        attendee_email=f"guest{ticket_number}@example.com",
        is_used=False,
    )
