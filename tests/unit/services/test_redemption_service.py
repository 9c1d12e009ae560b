import pytest
from ticketcore.core import notifications
from ticketcore.core.notifications import EventKind
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.booking.models import BookingStatus
from ticketcore.domain.exceptions import NotFound, Forbidden, Conflict, InvalidState
from ticketcore.services import redemption_service
from tests.helper import make_db, make_actor, make_event, make_booking


@pytest.mark.asyncio
async def test_redeem_checks_in_one_attendee(mocker, auditspan_stub):
    booking = make_booking(quantity=2)
    code = booking.codes[0]
    db = make_db(mocker, make_event(organizer_id=50), code, booking)

    result = await redemption_service.redeem(db, 1, code.code, make_actor(50, ActorRole.ORGANIZER))

    assert result.booking is booking
    assert result.ticket_number == 1
    assert result.attendee == {"name": "Guest 1", "email": "guest1@example.com", "phone": None}
    assert result.all_codes_used is False
    assert code.is_used is True
    db.flush.assert_awaited_once()
    assert [e["kind"] for e in notifications.pending(db)] == [EventKind.CODE_REDEEMED]
    assert auditspan_stub[0].booking_id == booking.id


@pytest.mark.asyncio
async def test_redeem_last_code_reports_all_used(mocker):
    booking = make_booking(quantity=1)
    code = booking.codes[0]
    db = make_db(mocker, make_event(organizer_id=50), code, booking)

    result = await redemption_service.redeem(db, 1, code.code, make_actor(7, ActorRole.STAFF))

    assert result.all_codes_used is True
    assert booking.status == BookingStatus.USED


@pytest.mark.asyncio
@pytest.mark.parametrize("actor", [
    make_actor(51, ActorRole.ORGANIZER),
    make_actor(1, ActorRole.BUYER),
])
async def test_redeem_by_non_organizer_raises_forbidden(mocker, actor):
    db = make_db(mocker, make_event(organizer_id=50))

    with pytest.raises(Forbidden):
        await redemption_service.redeem(db, 1, "1000000001", actor)

    db.scalar.assert_awaited_once()


@pytest.mark.asyncio
async def test_redeem_unknown_event_raises_not_found(mocker):
    db = make_db(mocker, None)

    with pytest.raises(NotFound):
        await redemption_service.redeem(db, 1, "1000000001", make_actor(50, ActorRole.ORGANIZER))


@pytest.mark.asyncio
async def test_redeem_code_of_another_event_is_not_found(mocker):
    db = make_db(mocker, make_event(event_id=2, organizer_id=50), None)

    with pytest.raises(NotFound) as e:
        await redemption_service.redeem(db, 2, "1000000001", make_actor(50, ActorRole.ORGANIZER))

    assert str(e.value) == "Verification code not found"


@pytest.mark.asyncio
async def test_redeem_same_code_twice_raises_conflict(mocker):
    booking = make_booking(quantity=2)
    code = booking.codes[0]
    organizer = make_actor(50, ActorRole.ORGANIZER)
    db = make_db(mocker, make_event(organizer_id=50), code, booking, make_event(organizer_id=50), code, booking)

    await redemption_service.redeem(db, 1, code.code, organizer)
    with pytest.raises(Conflict):
        await redemption_service.redeem(db, 1, code.code, organizer)

    assert [e["kind"] for e in notifications.pending(db)] == [EventKind.CODE_REDEEMED]


@pytest.mark.asyncio
async def test_redeem_for_cancelled_booking_raises_invalid_state(mocker):
    booking = make_booking(quantity=1, status=BookingStatus.CANCELLED)
    code = booking.codes[0]
    db = make_db(mocker, make_event(organizer_id=50), code, booking)

    with pytest.raises(InvalidState):
        await redemption_service.redeem(db, 1, code.code, make_actor(50, ActorRole.ORGANIZER))

    db.flush.assert_not_awaited()
