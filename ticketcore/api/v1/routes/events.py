from fastapi import APIRouter, Depends, status
from typing import Annotated
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core.database import get_db
from ticketcore.core.dependencies.auth import get_current_actor
from ticketcore.domain.booking.schemas import InventoryItemDTO
from ticketcore.services import inventory_service


router = APIRouter(tags=["events"])
db_dependency = Annotated[AsyncSession, Depends(get_db)]


@router.get(
    "/events/{event_id}/inventory",
    status_code=status.HTTP_200_OK,
    response_model=list[InventoryItemDTO],
    dependencies=[Depends(get_current_actor())]
)
async def get_event_inventory(event_id: int, db: db_dependency):
    return await inventory_service.get_availability(db, event_id)
