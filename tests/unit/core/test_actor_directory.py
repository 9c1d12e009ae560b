import pytest
from ticketcore.domain.actors.directory import SqlActorDirectory, can_organize, can_buy
from ticketcore.domain.actors.models import ActorRole
from tests.helper import db_with_scalar, make_actor


@pytest.mark.asyncio
async def test_find_by_id_maps_user_to_actor(mocker):
    user = mocker.Mock(
        id=4, role=ActorRole.ORGANIZER, first_name="Tolu", last_name="Ade", email="tolu@example.com",
        phone_number="+2348031234567"
    )
    directory = SqlActorDirectory(db_with_scalar(mocker, user))

    actor = await directory.find_by_id(4)

    assert actor.id == 4
    assert actor.role == ActorRole.ORGANIZER
    assert actor.phone == "+2348031234567"
    assert actor.full_name == "Tolu Ade"


@pytest.mark.asyncio
async def test_find_by_id_unknown_user_returns_none(mocker):
    directory = SqlActorDirectory(db_with_scalar(mocker, None))

    assert await directory.find_by_id(99) is None


@pytest.mark.parametrize("role, actor_id, expected", [
    (ActorRole.STAFF, 1, True),
    (ActorRole.ORGANIZER, 50, True),
    (ActorRole.ORGANIZER, 51, False),
    (ActorRole.BUYER, 50, False),
])
def test_can_organize(role, actor_id, expected):
    assert can_organize(make_actor(actor_id, role), organizer_id=50) is expected


@pytest.mark.parametrize("role, actor_id, expected", [
    (ActorRole.BUYER, 1, True),
    (ActorRole.BUYER, 50, False),
    (ActorRole.ORGANIZER, 1, False),
    (ActorRole.STAFF, 1, False),
])
def test_can_buy(role, actor_id, expected):
    assert can_buy(make_actor(actor_id, role), organizer_id=50) is expected
