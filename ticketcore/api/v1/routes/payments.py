from fastapi import APIRouter, Depends, status
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core.database import get_db
from ticketcore.core.dependencies.auth import get_current_actor
from ticketcore.core.dependencies.webhooks import require_webhook_secret
from ticketcore.domain.actors.directory import Actor
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.booking.schemas import PaymentConfirmationDTO, BookingReadDTO
from ticketcore.services import confirmation_service


router = APIRouter(prefix="/payments", tags=["payments"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.post(
    "/verify",
    status_code=status.HTTP_200_OK,
    response_model=BookingReadDTO,
    response_model_exclude_none=True
)
async def verify_payment(
        schema: PaymentConfirmationDTO,
        db: db_dependency,
        user: Annotated[Actor, Depends(get_current_actor(ActorRole.BUYER))]
):
    return await confirmation_service.verify_payment(db, user, schema)


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    response_model=BookingReadDTO,
    response_model_exclude_none=True,
    dependencies=[Depends(require_webhook_secret)]
)
async def payment_webhook(schema: PaymentConfirmationDTO, db: db_dependency):
    return await confirmation_service.handle_payment_result(db, schema)
