from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator
from ticketcore.core.utils.validators import strip_text
from ticketcore.domain.refunds.models import RefundReason, RefundStatus, RefundPriority


class RefundRequestCreateDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    reason: RefundReason
    description: str = Field(min_length=3, max_length=2000)

    _strip_description = field_validator("description", mode="before")(strip_text)


class RefundResolveDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    status: RefundStatus
    admin_response: str | None = Field(default=None, max_length=2000)

    _strip_admin_response = field_validator("admin_response", mode="before")(strip_text)

    @field_validator("status")
    @classmethod
    def _resolution_only(cls, v: RefundStatus) -> RefundStatus:
        if v not in (RefundStatus.APPROVED, RefundStatus.REJECTED):
            raise ValueError("Refund requests can only be approved or rejected")
        return v


class RefundApprovedDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    booking_id: int = Field(gt=0)
    approved_amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class RefundReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    id: int
    booking_id: int
    user_id: int
    event_id: int
    reason: RefundReason
    description: str
    refund_amount: Decimal
    processing_fee: Decimal
    final_refund_amount: Decimal
    status: RefundStatus
    priority: RefundPriority
    admin_response: str | None = None
    resolved_by: int | None = None
    resolved_at: datetime | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None
