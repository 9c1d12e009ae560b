"""
Outbound domain events for the notification and read-model collaborators.

Services enqueue events on the session while the transaction is open; the
session owner dispatches them only after a successful commit. Delivery is
best-effort: failures are logged and never reach the caller.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping
from ticketcore.core.config import NOTIFY_STREAM
from ticketcore.core.ctx import get_redis, get_request_id

logger = logging.getLogger("ticketcore.notifications")

_OUTBOX_KEY = "outbox"


class EventKind:
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_CANCELLED = "booking.cancelled"
    BOOKING_REFUNDED = "booking.refunded"
    CODE_REDEEMED = "code.redeemed"
    INVENTORY_UPDATED = "inventory.updated"


def enqueue(db, kind: str, payload: Mapping[str, Any]) -> None:
    outbox = db.info.setdefault(_OUTBOX_KEY, [])
    outbox.append({
        "kind": kind,
        "request_id": get_request_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "payload": dict(payload),
    })


def pending(db) -> list[dict]:
    return list(db.info.get(_OUTBOX_KEY, []))


def discard(db) -> None:
    db.info.pop(_OUTBOX_KEY, None)


async def dispatch(db) -> int:
    events = db.info.pop(_OUTBOX_KEY, [])
    if not events:
        return 0

    r = get_redis()
    if not r:
        logger.warning("No redis client in context; dropping %d outbound events", len(events))
        return 0

    sent = 0
    for event in events:
        try:
            await r.xadd(NOTIFY_STREAM, {"json": json.dumps(event, default=str)})
            sent += 1
        except Exception:
            logger.exception("Outbound event dispatch failed", extra={"kind": event["kind"]})
    return sent
