from .actors.models import User
from .events.models import Event, EventTicketType
from .booking.models import Booking, BookingAttendee, VerificationCode
from .refunds.models import RefundRequest

__all__ = (
    "User", "Event", "EventTicketType", "Booking", "BookingAttendee", "VerificationCode", "RefundRequest"
)
