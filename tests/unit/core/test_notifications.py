import json
import pytest
from ticketcore.core import notifications
from ticketcore.core.ctx import REDIS_CTX, REQUEST_ID_CTX
from ticketcore.core.notifications import EventKind


def _session(mocker):
    db = mocker.Mock()
    db.info = {}
    return db


def test_enqueue_buffers_events_with_request_id(mocker):
    db = _session(mocker)
    token = REQUEST_ID_CTX.set("req-1")
    try:
        notifications.enqueue(db, EventKind.BOOKING_CONFIRMED, {"booking_id": 1})
    finally:
        REQUEST_ID_CTX.reset(token)

    [event] = notifications.pending(db)
    assert event["kind"] == "booking.confirmed"
    assert event["request_id"] == "req-1"
    assert event["payload"] == {"booking_id": 1}
    assert event["occurred_at"].endswith("Z")


def test_discard_drops_buffered_events(mocker):
    db = _session(mocker)
    notifications.enqueue(db, EventKind.BOOKING_CANCELLED, {"booking_id": 1})

    notifications.discard(db)

    assert notifications.pending(db) == []


@pytest.mark.asyncio
async def test_dispatch_publishes_each_event_once(mocker):
    db = _session(mocker)
    notifications.enqueue(db, EventKind.CODE_REDEEMED, {"booking_id": 1})
    notifications.enqueue(db, EventKind.INVENTORY_UPDATED, {"event_id": 2})
    r = mocker.Mock()
    r.xadd = mocker.AsyncMock()
    token = REDIS_CTX.set(r)
    try:
        sent = await notifications.dispatch(db)
        again = await notifications.dispatch(db)
    finally:
        REDIS_CTX.reset(token)

    assert sent == 2
    assert again == 0
    stream, fields = r.xadd.await_args_list[0].args
    assert stream == notifications.NOTIFY_STREAM
    assert json.loads(fields["json"])["kind"] == "code.redeemed"


@pytest.mark.asyncio
async def test_dispatch_without_redis_drops_events(mocker):
    db = _session(mocker)
    notifications.enqueue(db, EventKind.BOOKING_REFUNDED, {"booking_id": 1})

    assert await notifications.dispatch(db) == 0
    assert notifications.pending(db) == []


@pytest.mark.asyncio
async def test_dispatch_failure_is_swallowed_and_counted(mocker):
    db = _session(mocker)
    notifications.enqueue(db, EventKind.BOOKING_CONFIRMED, {"booking_id": 1})
    notifications.enqueue(db, EventKind.BOOKING_CONFIRMED, {"booking_id": 2})
    r = mocker.Mock()
    r.xadd = mocker.AsyncMock(side_effect=[ConnectionError("down"), "1-0"])
    token = REDIS_CTX.set(r)
    try:
        sent = await notifications.dispatch(db)
    finally:
        REDIS_CTX.reset(token)

    assert sent == 1
