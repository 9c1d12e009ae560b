import logging
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core import notifications
from ticketcore.core.notifications import EventKind
from ticketcore.domain.events.models import Event, EventTicketType
from ticketcore.domain.booking.schemas import InventoryItemDTO
from ticketcore.domain.exceptions import NotFound, Conflict, InvalidInput

logger = logging.getLogger("ticketcore.inventory")


async def _load_pool(db: AsyncSession, event_id: int, ticket_type: str) -> EventTicketType | None:
    return await db.scalar(
        select(EventTicketType).where(EventTicketType.event_id == event_id, EventTicketType.name == ticket_type)
    )


async def _bump_attendees(db: AsyncSession, event_id: int, delta: int) -> None:
    await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(current_attendees=func.greatest(Event.current_attendees + delta, 0))
    )


def _announce(db: AsyncSession, event_id: int, ticket_type: str, sold: int, delta: int) -> None:
    notifications.enqueue(db, EventKind.INVENTORY_UPDATED, {
        "event_id": event_id,
        "ticket_type": str(ticket_type),
        "sold": sold,
        "delta": delta,
    })


async def reserve(db: AsyncSession, event_id: int, ticket_type: str, quantity: int) -> int:
    """
    Commit `quantity` units of a ticket type to a booking.
    - Single conditional UPDATE: the capacity check and the increment happen in one statement,
      so concurrent reservations against the same pool can never jointly oversell
    - Returns the new `sold` counter
    """
    if quantity < 1:
        raise InvalidInput("Quantity must be positive", ctx={"quantity": quantity})

    sold = await db.scalar(
        update(EventTicketType)
        .where(
            EventTicketType.event_id == event_id,
            EventTicketType.name == ticket_type,
            EventTicketType.sold + quantity <= EventTicketType.quantity,
        )
        .values(sold=EventTicketType.sold + quantity)
        .returning(EventTicketType.sold)
    )
    if sold is None:
        pool = await _load_pool(db, event_id, ticket_type)
        if not pool:
            raise NotFound("Invalid ticket type", ctx={"event_id": event_id, "ticket_type": ticket_type})
        raise Conflict(
            f"Only {pool.available} tickets available for {ticket_type}",
            ctx={"event_id": event_id, "ticket_type": ticket_type, "requested": quantity, "available": pool.available}
        )

    await _bump_attendees(db, event_id, quantity)
    _announce(db, event_id, ticket_type, sold, quantity)
    logger.info("Reserved %d x %s for event %s (sold=%d)", quantity, ticket_type, event_id, sold)
    return sold


async def release(db: AsyncSession, event_id: int, ticket_type: str, quantity: int) -> int | None:
    if quantity < 1:
        return None

    sold = await db.scalar(
        update(EventTicketType)
        .where(EventTicketType.event_id == event_id, EventTicketType.name == ticket_type)
        .values(sold=func.greatest(EventTicketType.sold - quantity, 0))
        .returning(EventTicketType.sold)
    )
    if sold is None:
        logger.warning("Release skipped, unknown ticket type %s for event %s", ticket_type, event_id)
        return None

    await _bump_attendees(db, event_id, -quantity)
    _announce(db, event_id, ticket_type, sold, -quantity)
    logger.info("Released %d x %s for event %s (sold=%d)", quantity, ticket_type, event_id, sold)
    return sold


async def ensure_available(db: AsyncSession, event_id: int, ticket_type: str, quantity: int) -> EventTicketType:
    pool = await _load_pool(db, event_id, ticket_type)
    if not pool:
        raise NotFound("Invalid ticket type", ctx={"event_id": event_id, "ticket_type": ticket_type})
    if pool.available < quantity:
        raise Conflict(
            f"Only {pool.available} tickets available for {ticket_type}",
            ctx={"event_id": event_id, "ticket_type": ticket_type, "requested": quantity, "available": pool.available}
        )
    return pool


async def get_availability(db: AsyncSession, event_id: int) -> list[InventoryItemDTO]:
    event = await db.scalar(select(Event).where(Event.id == event_id))
    if not event:
        raise NotFound("Event not found", ctx={"event_id": event_id})
    return [
        InventoryItemDTO(name=tt.name, price=tt.price, quantity=tt.quantity, sold=tt.sold, available=tt.available)
        for tt in event.ticket_types
    ]
