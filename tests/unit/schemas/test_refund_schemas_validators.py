import pytest
from decimal import Decimal
from pydantic import ValidationError
from ticketcore.domain.refunds.models import RefundReason, RefundStatus
from ticketcore.domain.refunds.schemas import RefundRequestCreateDTO, RefundResolveDTO, RefundApprovedDTO


def test_refund_request_accepts_reason_by_label():
    dto = RefundRequestCreateDTO(reason="Travel restrictions", description=" Border closed ")

    assert dto.reason == RefundReason.TRAVEL_RESTRICTIONS
    assert dto.description == "Border closed"


@pytest.mark.parametrize("payload", [
    {"reason": "Changed my mind", "description": "Nope"},
    {"reason": "Other", "description": "  "},
    {"reason": "Other"},
])
def test_refund_request_invalid_payload(payload):
    with pytest.raises(ValidationError):
        RefundRequestCreateDTO(**payload)


@pytest.mark.parametrize("status", ["APPROVED", "REJECTED"])
def test_refund_resolve_accepts_resolutions(status):
    assert RefundResolveDTO(status=status).status == RefundStatus(status)


@pytest.mark.parametrize("status", ["PENDING", "PROCESSED", "MAYBE"])
def test_refund_resolve_rejects_other_statuses(status):
    with pytest.raises(ValidationError):
        RefundResolveDTO(status=status)


def test_refund_approved_amount_must_be_non_negative():
    assert RefundApprovedDTO(booking_id=1, approved_amount="12.50").approved_amount == Decimal("12.50")
    with pytest.raises(ValidationError):
        RefundApprovedDTO(booking_id=1, approved_amount="-1")
