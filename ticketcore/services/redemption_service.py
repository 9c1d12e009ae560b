from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core import notifications
from ticketcore.core.auditing import AuditSpan
from ticketcore.core.notifications import EventKind
from ticketcore.domain.actors.directory import Actor, can_organize
from ticketcore.domain.booking.models import Booking, VerificationCode
from ticketcore.domain.events.models import Event
from ticketcore.domain.exceptions import NotFound, Forbidden
from ticketcore.services import booking_service


@dataclass(frozen=True)
class RedemptionResult:
    booking: Booking
    attendee: dict
    ticket_number: int
    all_codes_used: bool


async def redeem(db: AsyncSession, event_id: int, code: str, actor: Actor) -> RedemptionResult:
    """Check one ticket in at the door of a specific event."""
    async with AuditSpan(
        scope="CHECK_IN",
        action="REDEEM_CODE",
        object_type="verification_code",
        event_id=event_id
    ) as span:
        event = await db.scalar(select(Event).where(Event.id == event_id))
        if not event:
            raise NotFound("Event not found", ctx={"event_id": event_id})
        if not can_organize(actor, event.organizer_id):
            raise Forbidden(
                "Only the event organizer can check in attendees",
                ctx={"event_id": event_id, "user_id": actor.id}
            )

        code_row = await db.scalar(
            select(VerificationCode)
            .where(VerificationCode.event_id == event_id, VerificationCode.code == code)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if not code_row:
            raise NotFound("Verification code not found", ctx={"event_id": event_id})

        booking = await booking_service.require_booking(db, code_row.booking_id, for_update=True)
        span.object_id = code_row.id
        span.booking_id = booking.id

        now = datetime.now(timezone.utc)
        all_used = booking_service.redeem_code(booking, code_row, actor, now)
        await db.flush()

        attendee = {"name": code_row.attendee_name, "email": code_row.attendee_email, "phone": code_row.attendee_phone}
        notifications.enqueue(db, EventKind.CODE_REDEEMED, {
            "booking_id": booking.id,
            "event_id": event_id,
            "ticket_number": code_row.ticket_number,
            "attendee": attendee,
            "used_by": actor.id,
            "used_at": now,
            "all_codes_used": all_used,
        })
        span.meta.update({"ticket_number": code_row.ticket_number, "all_codes_used": all_used})
        return RedemptionResult(
            booking=booking,
            attendee=attendee,
            ticket_number=code_row.ticket_number,
            all_codes_used=all_used
        )
