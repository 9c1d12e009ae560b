import logging
import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core import config, notifications
from ticketcore.core.auditing import AuditSpan
from ticketcore.core.notifications import EventKind
from ticketcore.core.pagination import PageDTO, paginate
from ticketcore.domain.actors.directory import Actor, can_buy, can_organize
from ticketcore.domain.booking.models import Booking, BookingAttendee, BookingStatus, PaymentStatus, VerificationCode
from ticketcore.domain.booking.schemas import BookingCreateDTO, PaidBookingCreateDTO, AttendeeDTO, \
    UserBookingsQueryDTO, BookingListItemDTO
from ticketcore.domain.events.models import Event, EventTicketType
from ticketcore.domain.exceptions import NotFound, Conflict, InvalidInput, Forbidden, InvalidState, TamperedCode
from ticketcore.services import inventory_service, verification_codes

logger = logging.getLogger("ticketcore.booking")

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
OPEN_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass(frozen=True)
class Fees:
    total_amount: Decimal
    platform_fee: Decimal
    vat: Decimal
    final_amount: Decimal


def calculate_fees(amount: Decimal) -> Fees:
    platform_fee = amount * config.PLATFORM_FEE_PERCENT / HUNDRED
    vat = platform_fee * config.PLATFORM_VAT_PERCENT / HUNDRED
    return Fees(
        total_amount=amount.quantize(CENT, rounding=ROUND_HALF_UP),
        platform_fee=platform_fee.quantize(CENT, rounding=ROUND_HALF_UP),
        vat=vat.quantize(CENT, rounding=ROUND_HALF_UP),
        final_amount=(amount + platform_fee + vat).quantize(CENT, rounding=ROUND_HALF_UP),
    )


def generate_payment_reference(prefix: str = "SP") -> str:
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(5))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


def normalize_roster(attendees: Sequence[AttendeeDTO], purchaser: Actor, quantity: int) -> list[BookingAttendee]:
    """Exactly `quantity` entries: extra entries are dropped, missing ones are the purchaser."""
    entries = list(attendees[:quantity])
    entries.extend(AttendeeDTO() for _ in range(quantity - len(entries)))
    return [
        BookingAttendee(
            position=position,
            name=entry.name or purchaser.full_name,
            email=entry.email or purchaser.email,
            phone=entry.phone or purchaser.phone,
        )
        for position, entry in enumerate(entries, start=1)
    ]


def _hours_until(moment: datetime, now: datetime) -> float:
    return (moment - now) / timedelta(hours=1)


async def _require_event(db: AsyncSession, event_id: int) -> Event:
    event = await db.scalar(select(Event).where(Event.id == event_id))
    if not event:
        raise NotFound("Event not found", ctx={"event_id": event_id})
    return event


def _require_bookable(event: Event, now: datetime) -> None:
    if not event.approved:
        raise InvalidInput("Event is not yet approved for booking", ctx={"event_id": event.id})
    if event.start_date <= now:
        raise InvalidInput("Cannot book tickets for past events", ctx={"event_id": event.id})


def _require_buyer(actor: Actor, event: Event) -> None:
    if not can_buy(actor, event.organizer_id):
        raise Forbidden(
            "Only regular users can book tickets",
            ctx={"user_id": actor.id, "role": actor.role, "event_id": event.id}
        )


def _require_ticket_type(event: Event, name: str) -> EventTicketType:
    ticket_type = event.ticket_type(name)
    if not ticket_type:
        raise NotFound("Invalid ticket type", ctx={"event_id": event.id, "ticket_type": name})
    return ticket_type


async def _prepare(db: AsyncSession, actor: Actor, schema: BookingCreateDTO) -> tuple[Event, EventTicketType]:
    now = datetime.now(timezone.utc)
    event = await _require_event(db, schema.event_id)
    _require_bookable(event, now)
    _require_buyer(actor, event)
    return event, _require_ticket_type(event, schema.ticket_type)


async def require_booking(db: AsyncSession, booking_id: int, *, for_update: bool = True) -> Booking:
    stmt = select(Booking).where(Booking.id == booking_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    booking = await db.scalar(stmt)
    if not booking:
        raise NotFound("Booking not found", ctx={"booking_id": booking_id})
    return booking


def _new_booking(
        actor: Actor,
        schema: BookingCreateDTO,
        ticket_type: EventTicketType,
        *,
        status: BookingStatus,
        payment_status: PaymentStatus,
        payment_reference: str,
        gateway_reference: str | None = None,
) -> Booking:
    fees = calculate_fees(ticket_type.price * schema.quantity)
    return Booking(
        user_id=actor.id,
        event_id=schema.event_id,
        ticket_type=ticket_type.name,
        quantity=schema.quantity,
        total_amount=fees.total_amount,
        platform_fee=fees.platform_fee,
        vat=fees.vat,
        final_amount=fees.final_amount,
        status=status,
        payment_status=payment_status,
        payment_reference=payment_reference,
        gateway_reference=gateway_reference,
        is_fully_checked_in=False,
        attendees=normalize_roster(schema.attendees, actor, schema.quantity),
    )


async def _persist(
        db: AsyncSession,
        booking: Booking,
        conflict: str = "Payment reference already used",
        ctx: dict | None = None
) -> None:
    db.add(booking)
    try:
        await db.flush()
    except IntegrityError as e:
        raise Conflict(conflict, ctx=ctx or {"payment_reference": booking.payment_reference}) from e
    await db.refresh(booking)


def _announce_confirmed(db: AsyncSession, booking: Booking) -> None:
    notifications.enqueue(db, EventKind.BOOKING_CONFIRMED, {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "event_id": booking.event_id,
        "ticket_type": str(booking.ticket_type),
        "quantity": booking.quantity,
        "final_amount": booking.final_amount,
        "payment_reference": booking.payment_reference,
        "codes": [
            {"ticket_number": c.ticket_number, "code": c.code, "attendee_email": c.attendee_email}
            for c in booking.codes
        ],
    })


async def create_paid_booking(db: AsyncSession, actor: Actor, schema: PaidBookingCreateDTO) -> Booking:
    """
    Direct booking for a purchase the caller has already settled.
    - Payment reference acts as the idempotency key: replaying it with the same user, event, ticket
      type and quantity returns the existing booking, any other reuse is a conflict
    - Inventory is committed and codes are issued in the same transaction as the booking row
    """
    async with AuditSpan(
        scope="BOOKING",
        action="CREATE_PAID",
        object_type="booking",
        event_id=schema.event_id,
        meta={"ticket_type": schema.ticket_type, "quantity": schema.quantity}
    ) as span:
        event, ticket_type = await _prepare(db, actor, schema)
        if ticket_type.price <= 0:
            raise InvalidInput("Ticket type is free, use registration instead", ctx={"ticket_type": ticket_type.name})

        existing = await db.scalar(select(Booking).where(Booking.payment_reference == schema.payment_reference))
        if existing:
            if (existing.user_id, existing.event_id, existing.ticket_type, existing.quantity) != \
                    (actor.id, event.id, ticket_type.name, schema.quantity):
                raise Conflict("Payment reference already used", ctx={"payment_reference": schema.payment_reference})
            span.object_id = existing.id
            span.meta["idempotent_hit"] = True
            return existing

        await inventory_service.reserve(db, event.id, ticket_type.name, schema.quantity)
        booking = _new_booking(
            actor, schema, ticket_type,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            payment_reference=schema.payment_reference,
            gateway_reference=schema.gateway_reference,
        )
        await _persist(db, booking)
        await verification_codes.issue_batch(db, booking, booking.attendees)
        _announce_confirmed(db, booking)

        span.object_id = booking.id
        span.booking_id = booking.id
        return booking


async def create_free_booking(db: AsyncSession, actor: Actor, schema: BookingCreateDTO) -> Booking:
    """One open registration per user and event; the partial unique index settles concurrent attempts."""
    async with AuditSpan(
        scope="BOOKING",
        action="CREATE_FREE",
        object_type="booking",
        event_id=schema.event_id,
        meta={"ticket_type": schema.ticket_type, "quantity": schema.quantity}
    ) as span:
        event, ticket_type = await _prepare(db, actor, schema)
        if ticket_type.price != 0:
            raise InvalidInput("Ticket type is not free", ctx={"ticket_type": ticket_type.name})

        already_registered = await db.scalar(
            select(
                select(1)
                .select_from(Booking)
                .where(
                    Booking.user_id == actor.id,
                    Booking.event_id == event.id,
                    Booking.status.in_(OPEN_STATUSES)
                )
                .exists()
            )
        )
        if already_registered:
            raise Conflict("You are already registered for this event", ctx={"event_id": event.id})

        await inventory_service.reserve(db, event.id, ticket_type.name, schema.quantity)
        booking = _new_booking(
            actor, schema, ticket_type,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            payment_reference=generate_payment_reference(),
        )
        await _persist(db, booking, "You are already registered for this event", {"event_id": event.id})
        await verification_codes.issue_batch(db, booking, booking.attendees)
        _announce_confirmed(db, booking)

        span.object_id = booking.id
        span.booking_id = booking.id
        return booking


async def create_pending_booking(db: AsyncSession, actor: Actor, schema: BookingCreateDTO) -> Booking:
    """Booking awaiting a payment-gateway result; nothing is reserved until it is confirmed."""
    async with AuditSpan(
        scope="BOOKING",
        action="CREATE_PENDING",
        object_type="booking",
        event_id=schema.event_id,
        meta={"ticket_type": schema.ticket_type, "quantity": schema.quantity}
    ) as span:
        event, ticket_type = await _prepare(db, actor, schema)
        if ticket_type.price <= 0:
            raise InvalidInput("Ticket type is free, use registration instead", ctx={"ticket_type": ticket_type.name})

        await inventory_service.ensure_available(db, event.id, ticket_type.name, schema.quantity)
        booking = _new_booking(
            actor, schema, ticket_type,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            payment_reference=generate_payment_reference(),
        )
        await _persist(db, booking)

        span.object_id = booking.id
        span.booking_id = booking.id
        return booking


async def confirm_booking(
        db: AsyncSession,
        booking_id: int,
        gateway_reference: str | None = None
) -> tuple[Booking, bool]:
    """
    Move a pending booking to confirmed after a successful payment.
    Returns the booking and whether this call performed the transition; a booking that is
    already confirmed is returned untouched.
    """
    async with AuditSpan(
        scope="BOOKING",
        action="CONFIRM",
        object_type="booking",
        object_id=booking_id,
        booking_id=booking_id
    ) as span:
        booking = await require_booking(db, booking_id, for_update=True)
        span.event_id = booking.event_id

        if booking.status == BookingStatus.CONFIRMED:
            span.meta["no_op"] = True
            return booking, False
        if booking.status != BookingStatus.PENDING:
            raise InvalidState(
                "Only pending bookings can be confirmed",
                ctx={"booking_id": booking.id, "status": booking.status}
            )

        await inventory_service.reserve(db, booking.event_id, booking.ticket_type, booking.quantity)
        booking.status = BookingStatus.CONFIRMED
        booking.payment_status = PaymentStatus.PAID
        if gateway_reference:
            booking.gateway_reference = gateway_reference
        await db.flush()

        if not booking.codes:
            await verification_codes.issue_batch(db, booking, booking.attendees)
        _announce_confirmed(db, booking)
        span.meta["codes"] = len(booking.codes)
        return booking, True


async def mark_payment_failed(db: AsyncSession, booking_id: int) -> Booking:
    async with AuditSpan(
        scope="BOOKING",
        action="PAYMENT_FAILED",
        object_type="booking",
        object_id=booking_id,
        booking_id=booking_id
    ) as span:
        booking = await require_booking(db, booking_id, for_update=True)
        if booking.status != BookingStatus.PENDING:
            logger.info("Ignoring payment failure for booking %s in status %s", booking.id, booking.status)
            span.meta["no_op"] = True
            return booking

        booking.payment_status = PaymentStatus.FAILED
        await db.flush()
        return booking


async def cancel_booking(db: AsyncSession, actor: Actor, booking_id: int, reason: str | None = None) -> Booking:
    async with AuditSpan(
        scope="BOOKING",
        action="CANCEL",
        object_type="booking",
        object_id=booking_id,
        booking_id=booking_id
    ) as span:
        booking = await require_booking(db, booking_id, for_update=True)
        span.event_id = booking.event_id

        if booking.user_id != actor.id:
            raise Forbidden("You can only cancel your own bookings", ctx={"booking_id": booking.id})
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidState(
                "Only confirmed bookings can be cancelled",
                ctx={"booking_id": booking.id, "status": booking.status}
            )
        if booking.is_fully_checked_in or booking.has_used_codes:
            raise InvalidState("Cannot cancel booking after check-in", ctx={"booking_id": booking.id})

        now = datetime.now(timezone.utc)
        event = await _require_event(db, booking.event_id)
        if _hours_until(event.start_date, now) <= config.CANCELLATION_CUTOFF_HOURS:
            raise InvalidState(
                f"Cannot cancel booking less than {config.CANCELLATION_CUTOFF_HOURS} hours before the event",
                ctx={"booking_id": booking.id, "event_start": event.start_date}
            )

        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = now
        booking.cancellation_reason = reason
        await inventory_service.release(db, booking.event_id, booking.ticket_type, booking.quantity)
        await db.flush()

        notifications.enqueue(db, EventKind.BOOKING_CANCELLED, {
            "booking_id": booking.id,
            "user_id": booking.user_id,
            "event_id": booking.event_id,
            "quantity": booking.quantity,
        })
        return booking


def redeem_code(booking: Booking, code: VerificationCode, actor: Actor, now: datetime) -> bool:
    """
    Consume one verification code of a locked booking.
    Returns True when this was the last unused code and the booking became used.
    """
    if code.is_used:
        raise Conflict(
            "Ticket already used",
            ctx={
                "booking_id": booking.id,
                "ticket_number": code.ticket_number,
                "used_at": code.used_at,
                "used_by": code.used_by
            }
        )
    if booking.status != BookingStatus.CONFIRMED:
        raise InvalidState(
            "Only confirmed bookings can be checked in",
            ctx={"booking_id": booking.id, "status": booking.status}
        )
    ctx = verification_codes.CodeContext.from_booking(booking)
    if not verification_codes.verify_code_hash(ctx, code.code, code.code_hash):
        raise TamperedCode("Verification code does not match booking", ctx={"booking_id": booking.id})

    code.is_used = True
    code.used_at = now
    code.used_by = actor.id

    if all(c.is_used for c in booking.codes):
        booking.status = BookingStatus.USED
        booking.is_fully_checked_in = True
        booking.check_in_time = now
        booking.checked_in_by = actor.id
        return True
    return False


async def refund_booking(
        db: AsyncSession,
        booking_id: int,
        amount: Decimal | None = None,
        reason: str | None = None
) -> Booking:
    async with AuditSpan(
        scope="BOOKING",
        action="REFUND",
        object_type="booking",
        object_id=booking_id,
        booking_id=booking_id
    ) as span:
        booking = await require_booking(db, booking_id, for_update=True)
        span.event_id = booking.event_id

        if booking.status == BookingStatus.REFUNDED:
            span.meta["no_op"] = True
            return booking
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidState(
                "Only confirmed bookings can be refunded",
                ctx={"booking_id": booking.id, "status": booking.status}
            )
        if booking.is_fully_checked_in or booking.has_used_codes:
            raise InvalidState("Cannot refund booking after check-in", ctx={"booking_id": booking.id})
        if amount is not None and amount > booking.final_amount:
            raise InvalidInput(
                "Refund amount exceeds the amount paid",
                ctx={"booking_id": booking.id, "amount": amount, "final_amount": booking.final_amount}
            )

        await inventory_service.release(db, booking.event_id, booking.ticket_type, booking.quantity)
        booking.status = BookingStatus.REFUNDED
        booking.payment_status = PaymentStatus.REFUNDED
        booking.refund_amount = booking.final_amount if amount is None else amount
        booking.refund_reason = reason
        booking.refunded_at = datetime.now(timezone.utc)
        await db.flush()

        notifications.enqueue(db, EventKind.BOOKING_REFUNDED, {
            "booking_id": booking.id,
            "user_id": booking.user_id,
            "event_id": booking.event_id,
            "refund_amount": booking.refund_amount,
        })
        span.meta["refund_amount"] = str(booking.refund_amount)
        return booking


async def get_booking_for_actor(db: AsyncSession, actor: Actor, booking_id: int) -> Booking:
    booking = await require_booking(db, booking_id, for_update=False)
    if booking.user_id == actor.id:
        return booking
    event = await _require_event(db, booking.event_id)
    if not can_organize(actor, event.organizer_id):
        raise Forbidden("Access denied", ctx={"booking_id": booking_id})
    return booking


async def list_user_bookings(
        db: AsyncSession,
        actor: Actor,
        query: UserBookingsQueryDTO
) -> PageDTO[BookingListItemDTO]:
    where = [Booking.user_id == actor.id]
    if query.status is not None:
        where.append(Booking.status == query.status)

    rows, total = await paginate(
        db,
        select(Booking),
        page=query.page,
        page_size=query.page_size,
        where=where,
        order_by=[Booking.created_at.desc(), Booking.id.desc()],
    )
    return PageDTO[BookingListItemDTO](
        items=[BookingListItemDTO.model_validate(b) for b in rows],
        total=total,
        page=query.page,
        page_size=query.page_size
    )
