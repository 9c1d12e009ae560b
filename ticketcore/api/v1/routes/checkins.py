from fastapi import APIRouter, Depends, status
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core.database import get_db
from ticketcore.core.dependencies.auth import get_current_actor
from ticketcore.domain.actors.directory import Actor
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.booking.schemas import RedemptionRequestDTO, RedemptionReadDTO, BookingReadDTO
from ticketcore.services import redemption_service


router = APIRouter(prefix="/events/{event_id}/check-ins", tags=["check-in"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.post("", status_code=status.HTTP_200_OK, response_model=RedemptionReadDTO)
async def check_in(
        event_id: int,
        schema: RedemptionRequestDTO,
        db: db_dependency,
        user: Annotated[Actor, Depends(get_current_actor(ActorRole.ORGANIZER, ActorRole.STAFF))]
):
    result = await redemption_service.redeem(db, event_id, schema.code, user)
    return RedemptionReadDTO(
        booking=BookingReadDTO.model_validate(result.booking),
        attendee=result.attendee,
        ticket_number=result.ticket_number,
        all_codes_used=result.all_codes_used
    )
