import logging
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.domain.booking.models import Booking
from ticketcore.domain.booking.schemas import PaymentConfirmationDTO
from ticketcore.domain.actors.directory import Actor
from ticketcore.domain.exceptions import NotFound, Conflict, Forbidden
from ticketcore.services import booking_service

logger = logging.getLogger("ticketcore.confirmation")


async def _require_matching_reference(db: AsyncSession, booking_id: int, payment_reference: str) -> Booking:
    booking = await db.scalar(select(Booking).where(Booking.id == booking_id))
    if not booking:
        raise NotFound("Booking not found", ctx={"booking_id": booking_id})
    if booking.payment_reference != payment_reference:
        raise Conflict(
            "Payment reference does not match booking",
            ctx={"booking_id": booking_id, "payment_reference": payment_reference}
        )
    return booking


async def confirm(
        db: AsyncSession,
        booking_id: int,
        payment_reference: str,
        gateway_reference: str | None = None
) -> Booking:
    """
    Idempotent confirmation shared by the client verify call and the provider webhook.
    Either may arrive first or concurrently; the row lock serializes them and the second
    caller sees an already-confirmed booking and returns it unchanged.
    """
    await _require_matching_reference(db, booking_id, payment_reference)
    booking, transitioned = await booking_service.confirm_booking(db, booking_id, gateway_reference)
    if transitioned:
        logger.info("Booking %s confirmed via payment %s", booking.id, payment_reference)
    else:
        logger.info("Booking %s already confirmed; payment %s ignored", booking.id, payment_reference)
    return booking


async def handle_payment_result(db: AsyncSession, schema: PaymentConfirmationDTO) -> Booking:
    if schema.success:
        return await confirm(db, schema.booking_id, schema.payment_reference, schema.gateway_reference)

    await _require_matching_reference(db, schema.booking_id, schema.payment_reference)
    booking = await booking_service.mark_payment_failed(db, schema.booking_id)
    logger.info("Payment %s failed for booking %s", schema.payment_reference, booking.id)
    return booking


async def verify_payment(db: AsyncSession, actor: Actor, schema: PaymentConfirmationDTO) -> Booking:
    """Client-side payment verification; only the purchaser may report the result for their booking."""
    booking = await db.scalar(select(Booking).where(Booking.id == schema.booking_id))
    if not booking:
        raise NotFound("Booking not found", ctx={"booking_id": schema.booking_id})
    if booking.user_id != actor.id:
        raise Forbidden("You can only verify payments for your own bookings", ctx={"booking_id": booking.id})
    return await handle_payment_result(db, schema)
