from fastapi import APIRouter, Depends, Response, status
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core.database import get_db
from ticketcore.core.dependencies.auth import get_current_actor
from ticketcore.core.pagination import PageDTO
from ticketcore.domain.actors.directory import Actor
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.booking.schemas import BookingCreateDTO, PaidBookingCreateDTO, BookingReadDTO, \
    BookingCancelDTO, BookingListItemDTO, UserBookingsQueryDTO
from ticketcore.services import booking_service


router = APIRouter(tags=["bookings"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]
buyer_dependency = Annotated[Actor, Depends(get_current_actor(ActorRole.BUYER))]
actor_dependency = Annotated[Actor, Depends(get_current_actor())]


@router.post(
    "/bookings",
    status_code=status.HTTP_201_CREATED,
    response_model=BookingReadDTO,
    response_model_exclude_none=True
)
async def create_paid_booking(schema: PaidBookingCreateDTO, db: db_dependency, user: buyer_dependency, response: Response):
    booking = await booking_service.create_paid_booking(db, user, schema)
    response.headers["Location"] = f"/bookings/{booking.id}"
    return booking


@router.post(
    "/bookings/free",
    status_code=status.HTTP_201_CREATED,
    response_model=BookingReadDTO,
    response_model_exclude_none=True
)
async def register_free(schema: BookingCreateDTO, db: db_dependency, user: buyer_dependency, response: Response):
    booking = await booking_service.create_free_booking(db, user, schema)
    response.headers["Location"] = f"/bookings/{booking.id}"
    return booking


@router.post(
    "/bookings/pending",
    status_code=status.HTTP_201_CREATED,
    response_model=BookingReadDTO,
    response_model_exclude_none=True
)
async def create_pending_booking(schema: BookingCreateDTO, db: db_dependency, user: buyer_dependency,
                                 response: Response):
    booking = await booking_service.create_pending_booking(db, user, schema)
    response.headers["Location"] = f"/bookings/{booking.id}"
    return booking


@router.get("/users/me/bookings", status_code=status.HTTP_200_OK, response_model=PageDTO[BookingListItemDTO])
async def list_my_bookings(db: db_dependency, user: actor_dependency,
                           query: Annotated[UserBookingsQueryDTO, Depends()]):
    return await booking_service.list_user_bookings(db, user, query)


@router.get(
    "/bookings/{booking_id}",
    status_code=status.HTTP_200_OK,
    response_model=BookingReadDTO,
    response_model_exclude_none=True
)
async def get_booking(booking_id: int, db: db_dependency, user: actor_dependency):
    return await booking_service.get_booking_for_actor(db, user, booking_id)


@router.post(
    "/bookings/{booking_id}/cancel",
    status_code=status.HTTP_200_OK,
    response_model=BookingReadDTO,
    response_model_exclude_none=True
)
async def cancel_booking(booking_id: int, schema: BookingCancelDTO, db: db_dependency, user: buyer_dependency):
    return await booking_service.cancel_booking(db, user, booking_id, schema.reason)
