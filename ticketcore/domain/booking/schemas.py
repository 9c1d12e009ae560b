from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_validator, EmailStr
from ticketcore.core.utils.validators import strip_text, normalize_phone_or_none
from ticketcore.core.config import MAX_TICKETS_PER_BOOKING
from ticketcore.domain.booking.models import BookingStatus, PaymentStatus
from ticketcore.domain.events.models import TicketTypeName


class AttendeeDTO(BaseModel):
    model_config = ConfigDict(extra='forbid', from_attributes=True)

    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = None

    _strip_name = field_validator("name", mode="before")(strip_text)

    @field_validator("phone", mode="before")
    @classmethod
    def _normalize_phone(cls, v):
        return normalize_phone_or_none(v)


class BookingCreateDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    event_id: int = Field(gt=0)
    ticket_type: TicketTypeName
    quantity: int = Field(ge=1, le=MAX_TICKETS_PER_BOOKING)
    attendees: list[AttendeeDTO] = Field(default_factory=list)


class PaidBookingCreateDTO(BookingCreateDTO):
    payment_reference: str = Field(min_length=4, max_length=128)
    gateway_reference: str | None = Field(default=None, max_length=128)

    _strip_payment_reference = field_validator("payment_reference", mode="before")(strip_text)


class BookingCancelDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    reason: str | None = Field(default=None, max_length=500)

    _strip_reason = field_validator("reason", mode="before")(strip_text)


class PaymentConfirmationDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    booking_id: int = Field(gt=0)
    payment_reference: str = Field(min_length=4, max_length=128)
    gateway_reference: str | None = Field(default=None, max_length=128)
    success: bool = True


class RedemptionRequestDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    code: str = Field(pattern=r"^\d{10}$")

    _strip_code = field_validator("code", mode="before")(strip_text)


class AttendeeReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    name: str
    email: str
    phone: str | None = None


class VerificationCodeReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    ticket_number: int
    code: str
    attendee_name: str
    attendee_email: str
    attendee_phone: str | None = None
    is_used: bool
    used_at: datetime | None = None
    used_by: int | None = None


class BookingReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    id: int
    user_id: int
    event_id: int
    ticket_type: TicketTypeName
    quantity: int
    total_amount: Decimal
    platform_fee: Decimal
    vat: Decimal
    final_amount: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    payment_reference: str
    gateway_reference: str | None = None
    is_fully_checked_in: bool
    check_in_time: datetime | None = None
    checked_in_by: int | None = None
    cancelled_at: datetime | None = None
    refund_amount: Decimal | None = None
    refunded_at: datetime | None = None
    created_at: datetime | None = None
    attendees: list[AttendeeReadDTO] = Field(default_factory=list)
    codes: list[VerificationCodeReadDTO] = Field(default_factory=list)


class BookingListItemDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    id: int
    event_id: int
    ticket_type: TicketTypeName
    quantity: int
    final_amount: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    created_at: datetime


class UserBookingsQueryDTO(BaseModel):
    model_config = ConfigDict(extra='forbid')

    status: BookingStatus | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=200)


class RedemptionReadDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    booking: BookingReadDTO
    attendee: AttendeeReadDTO
    ticket_number: int
    all_codes_used: bool


class InventoryItemDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra='forbid')

    name: TicketTypeName
    price: Decimal
    quantity: int
    sold: int
    available: int
