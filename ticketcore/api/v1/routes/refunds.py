from fastapi import APIRouter, Depends, Query, Response, status
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core.database import get_db
from ticketcore.core.dependencies.auth import get_current_actor
from ticketcore.core.dependencies.webhooks import require_webhook_secret
from ticketcore.core.pagination import PageDTO
from ticketcore.domain.actors.directory import Actor
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.booking.schemas import BookingReadDTO
from ticketcore.domain.refunds.models import RefundStatus
from ticketcore.domain.refunds.schemas import RefundRequestCreateDTO, RefundReadDTO, RefundResolveDTO, \
    RefundApprovedDTO
from ticketcore.services import refund_service


router = APIRouter(tags=["refunds"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]
actor_dependency = Annotated[Actor, Depends(get_current_actor())]


@router.post("/bookings/{booking_id}/refund-requests", status_code=status.HTTP_201_CREATED,
             response_model=RefundReadDTO)
async def request_refund(
        booking_id: int,
        schema: RefundRequestCreateDTO,
        db: db_dependency,
        user: Annotated[Actor, Depends(get_current_actor(ActorRole.BUYER))],
        response: Response
):
    refund = await refund_service.request_refund(db, user, booking_id, schema)
    response.headers["Location"] = f"/refund-requests/{refund.id}"
    return refund


@router.get("/refund-requests", status_code=status.HTTP_200_OK, response_model=PageDTO[RefundReadDTO])
async def list_refund_requests(
        db: db_dependency,
        user: actor_dependency,
        refund_status: Annotated[RefundStatus | None, Query(alias="status")] = None,
        page: Annotated[int, Query(ge=1)] = 1,
        page_size: Annotated[int, Query(ge=1, le=200)] = 20
):
    return await refund_service.list_refunds(db, user, status=refund_status, page=page, page_size=page_size)


@router.get("/refund-requests/{refund_id}", status_code=status.HTTP_200_OK, response_model=RefundReadDTO)
async def get_refund_request(refund_id: int, db: db_dependency, user: actor_dependency):
    return await refund_service.get_refund_for_actor(db, user, refund_id)


@router.post("/refund-requests/{refund_id}/resolve", status_code=status.HTTP_200_OK, response_model=RefundReadDTO)
async def resolve_refund_request(
        refund_id: int,
        schema: RefundResolveDTO,
        db: db_dependency,
        user: Annotated[Actor, Depends(get_current_actor(ActorRole.STAFF))]
):
    return await refund_service.resolve_refund(db, user, refund_id, schema)


@router.post("/refund-requests/{refund_id}/cancel", status_code=status.HTTP_200_OK, response_model=RefundReadDTO)
async def cancel_refund_request(
        refund_id: int,
        db: db_dependency,
        user: Annotated[Actor, Depends(get_current_actor(ActorRole.BUYER))]
):
    return await refund_service.cancel_refund_request(db, user, refund_id)


@router.post(
    "/refunds/approved",
    status_code=status.HTTP_200_OK,
    response_model=BookingReadDTO,
    response_model_exclude_none=True,
    dependencies=[Depends(require_webhook_secret)]
)
async def refund_approved(schema: RefundApprovedDTO, db: db_dependency):
    return await refund_service.handle_refund_approved(db, schema)
