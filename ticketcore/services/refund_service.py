import logging
from datetime import datetime, timezone, timedelta
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core import config
from ticketcore.core.auditing import AuditSpan
from ticketcore.core.pagination import PageDTO, paginate
from ticketcore.domain.actors.directory import Actor
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.booking.models import Booking, BookingStatus
from ticketcore.domain.events.models import Event
from ticketcore.domain.exceptions import NotFound, Forbidden, InvalidState, Conflict
from ticketcore.domain.refunds.models import RefundRequest, RefundStatus, RefundPriority
from ticketcore.domain.refunds.schemas import RefundRequestCreateDTO, RefundResolveDTO, RefundApprovedDTO, \
    RefundReadDTO
from ticketcore.services import booking_service

logger = logging.getLogger("ticketcore.refunds")

CENT = Decimal("0.01")
OPEN_REFUND_STATUSES = (RefundStatus.PENDING, RefundStatus.APPROVED)


def processing_fee(amount: Decimal) -> Decimal:
    return (amount * config.REFUND_PROCESSING_FEE_PERCENT / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)


def priority_for(event_start: datetime, now: datetime) -> RefundPriority:
    until_start = event_start - now
    if until_start < timedelta(hours=24):
        return RefundPriority.URGENT
    if until_start < timedelta(hours=72):
        return RefundPriority.HIGH
    return RefundPriority.MEDIUM


def _require_staff(actor: Actor) -> None:
    match actor.role:
        case ActorRole.STAFF:
            return
        case _:
            raise Forbidden("Only staff can resolve refund requests", ctx={"user_id": actor.id})


async def _require_refund(db: AsyncSession, refund_id: int, *, for_update: bool = True) -> RefundRequest:
    stmt = select(RefundRequest).where(RefundRequest.id == refund_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    refund = await db.scalar(stmt)
    if not refund:
        raise NotFound("Refund request not found", ctx={"refund_id": refund_id})
    return refund


async def request_refund(
        db: AsyncSession,
        actor: Actor,
        booking_id: int,
        schema: RefundRequestCreateDTO
) -> RefundRequest:
    """
    Open a refund request for a confirmed booking.
    - Only the owner may ask, and only before any ticket was checked in
    - At most one open (pending or approved) request per booking
    - The processing fee is deducted up front; priority grows as the event approaches
    """
    async with AuditSpan(
        scope="REFUND",
        action="REQUEST",
        object_type="refund_request",
        booking_id=booking_id,
        meta={"reason": schema.reason.value}
    ) as span:
        booking = await booking_service.require_booking(db, booking_id, for_update=True)
        span.event_id = booking.event_id

        if booking.user_id != actor.id:
            raise Forbidden("You can only request refunds for your own bookings", ctx={"booking_id": booking_id})
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidState(
                "Only confirmed bookings can be refunded",
                ctx={"booking_id": booking_id, "status": booking.status}
            )
        if booking.is_fully_checked_in or booking.has_used_codes:
            raise InvalidState("Cannot refund booking after check-in", ctx={"booking_id": booking_id})

        open_request = await db.scalar(
            select(RefundRequest.id).where(
                RefundRequest.booking_id == booking_id,
                RefundRequest.status.in_(OPEN_REFUND_STATUSES)
            )
        )
        if open_request:
            raise Conflict(
                "A refund request is already open for this booking",
                ctx={"booking_id": booking_id, "refund_id": open_request}
            )

        event = await db.scalar(select(Event).where(Event.id == booking.event_id))
        if not event:
            raise NotFound("Event not found", ctx={"event_id": booking.event_id})

        fee = processing_fee(booking.final_amount)
        refund = RefundRequest(
            booking_id=booking.id,
            user_id=actor.id,
            event_id=booking.event_id,
            reason=schema.reason,
            description=schema.description,
            refund_amount=booking.final_amount,
            processing_fee=fee,
            final_refund_amount=max(Decimal("0.00"), booking.final_amount - fee),
            status=RefundStatus.PENDING,
            priority=priority_for(event.start_date, datetime.now(timezone.utc)),
        )
        db.add(refund)
        try:
            await db.flush()
        except IntegrityError as e:
            raise Conflict("A refund request is already open for this booking", ctx={"booking_id": booking_id}) from e
        await db.refresh(refund)

        span.object_id = refund.id
        span.meta["priority"] = refund.priority.value
        return refund


async def resolve_refund(db: AsyncSession, actor: Actor, refund_id: int, schema: RefundResolveDTO) -> RefundRequest:
    async with AuditSpan(
        scope="REFUND",
        action="RESOLVE",
        object_type="refund_request",
        object_id=refund_id,
        meta={"status": schema.status.value}
    ) as span:
        _require_staff(actor)
        located = await _require_refund(db, refund_id, for_update=False)
        # lock order: booking, then refund request
        await booking_service.require_booking(db, located.booking_id, for_update=True)
        refund = await _require_refund(db, refund_id, for_update=True)
        span.booking_id = refund.booking_id
        span.event_id = refund.event_id

        if refund.status != RefundStatus.PENDING:
            raise InvalidState(
                "Refund request has already been resolved",
                ctx={"refund_id": refund.id, "status": refund.status}
            )

        now = datetime.now(timezone.utc)
        refund.admin_response = schema.admin_response
        refund.resolved_by = actor.id
        refund.resolved_at = now

        if schema.status == RefundStatus.REJECTED:
            refund.status = RefundStatus.REJECTED
            await db.flush()
            return refund

        refund.status = RefundStatus.APPROVED
        await booking_service.refund_booking(
            db,
            refund.booking_id,
            amount=refund.final_refund_amount,
            reason=refund.reason.value
        )
        refund.status = RefundStatus.PROCESSED
        refund.processed_at = now
        await db.flush()

        logger.info("Refund %s processed for booking %s (%s)", refund.id, refund.booking_id, refund.final_refund_amount)
        return refund


async def handle_refund_approved(db: AsyncSession, schema: RefundApprovedDTO) -> Booking:
    """Refund settled outside the request workflow; replays leave an already refunded booking untouched."""
    await booking_service.require_booking(db, schema.booking_id, for_update=True)
    open_request = await db.scalar(
        select(RefundRequest)
        .where(RefundRequest.booking_id == schema.booking_id, RefundRequest.status.in_(OPEN_REFUND_STATUSES))
        .with_for_update()
        .execution_options(populate_existing=True)
    )

    booking = await booking_service.refund_booking(db, schema.booking_id, amount=schema.approved_amount)
    if open_request:
        open_request.status = RefundStatus.PROCESSED
        open_request.processed_at = datetime.now(timezone.utc)
        await db.flush()
    return booking


async def cancel_refund_request(db: AsyncSession, actor: Actor, refund_id: int) -> RefundRequest:
    """Owner withdraws a pending request; it is closed as rejected so the booking can be asked for again."""
    async with AuditSpan(
        scope="REFUND",
        action="CANCEL",
        object_type="refund_request",
        object_id=refund_id
    ) as span:
        refund = await _require_refund(db, refund_id, for_update=True)
        span.booking_id = refund.booking_id
        span.event_id = refund.event_id

        if refund.user_id != actor.id:
            raise Forbidden("You can only cancel your own refund requests", ctx={"refund_id": refund_id})
        if refund.status != RefundStatus.PENDING:
            raise InvalidState(
                "Only pending refund requests can be cancelled",
                ctx={"refund_id": refund.id, "status": refund.status}
            )

        refund.status = RefundStatus.REJECTED
        refund.admin_response = "Cancelled by user"
        refund.resolved_by = actor.id
        refund.resolved_at = datetime.now(timezone.utc)
        await db.flush()
        return refund


async def get_refund_for_actor(db: AsyncSession, actor: Actor, refund_id: int) -> RefundRequest:
    refund = await _require_refund(db, refund_id, for_update=False)
    if refund.user_id != actor.id and actor.role != ActorRole.STAFF:
        raise Forbidden("Access denied", ctx={"refund_id": refund_id})
    return refund


async def list_refunds(
        db: AsyncSession,
        actor: Actor,
        *,
        status: RefundStatus | None = None,
        page: int = 1,
        page_size: int = 20
) -> PageDTO[RefundReadDTO]:
    where = []
    if actor.role != ActorRole.STAFF:
        where.append(RefundRequest.user_id == actor.id)
    if status is not None:
        where.append(RefundRequest.status == status)

    rows, total = await paginate(
        db,
        select(RefundRequest),
        page=page,
        page_size=page_size,
        where=where,
        order_by=[RefundRequest.created_at.desc(), RefundRequest.id.desc()],
    )
    return PageDTO[RefundReadDTO](
        items=[RefundReadDTO.model_validate(r) for r in rows],
        total=total,
        page=page,
        page_size=page_size
    )
