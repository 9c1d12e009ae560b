"""
Per-ticket verification codes.

Every code is a 10-digit numeric string paired with an HMAC-SHA256 over the
booking it belongs to. The hash is the only authority at redemption time, so a
code copied into a different booking, event or payment never validates.
"""
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Iterable, Sequence
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core import config
from ticketcore.domain.booking.models import Booking, VerificationCode
from ticketcore.domain.exceptions import Conflict

logger = logging.getLogger("ticketcore.codes")

_CODE_FLOOR = 10 ** (config.CODE_LENGTH - 1)
_CODE_SPAN = 9 * _CODE_FLOOR


@dataclass(frozen=True)
class CodeContext:
    booking_id: int
    event_id: int
    user_id: int
    payment_reference: str

    @classmethod
    def from_booking(cls, booking: Booking) -> "CodeContext":
        return cls(
            booking_id=booking.id,
            event_id=booking.event_id,
            user_id=booking.user_id,
            payment_reference=booking.payment_reference,
        )

    def message(self, code: str) -> bytes:
        return f"{self.booking_id}:{self.event_id}:{self.user_id}:{self.payment_reference}:{code}".encode()


def generate_code() -> str:
    return str(_CODE_FLOOR + secrets.randbelow(_CODE_SPAN))


def generate_codes(quantity: int, exclude: Iterable[str] = ()) -> list[str]:
    taken = set(exclude)
    codes: list[str] = []
    while len(codes) < quantity:
        code = generate_code()
        if code in taken:
            continue
        taken.add(code)
        codes.append(code)
    return codes


def code_hash(ctx: CodeContext, code: str, secret: str | None = None) -> str:
    key = (secret if secret is not None else config.CODE_HASH_SECRET).encode()
    return hmac.new(key, ctx.message(code), hashlib.sha256).hexdigest()


def verify_code_hash(ctx: CodeContext, code: str, stored_hash: str | None, secret: str | None = None) -> bool:
    if not stored_hash or not code:
        return False
    return hmac.compare_digest(code_hash(ctx, code, secret), stored_hash)


def _build_batch(booking: Booking, roster: Sequence, codes: Sequence[str]) -> list[VerificationCode]:
    ctx = CodeContext.from_booking(booking)
    return [
        VerificationCode(
            booking_id=booking.id,
            event_id=booking.event_id,
            ticket_number=number,
            code=code,
            code_hash=code_hash(ctx, code),
            attendee_name=attendee.name,
            attendee_email=attendee.email,
            attendee_phone=attendee.phone,
            is_used=False,
        )
        for number, (attendee, code) in enumerate(zip(roster, codes), start=1)
    ]


async def issue_batch(db: AsyncSession, booking: Booking, roster: Sequence) -> list[VerificationCode]:
    """
    Issue one code per roster entry for a booking.
    - Codes are pairwise distinct inside the batch
    - A clash with a code already issued for the event rolls the savepoint back and the whole
      batch is regenerated; partial batches are never kept
    """
    if not roster:
        return []

    for attempt in range(1, config.CODE_ISSUE_ATTEMPTS + 1):
        batch = _build_batch(booking, roster, generate_codes(len(roster)))
        try:
            async with db.begin_nested():
                db.add_all(batch)
                await db.flush()
        except IntegrityError:
            logger.warning(
                "Verification code collision for booking %s (attempt %d/%d)",
                booking.id, attempt, config.CODE_ISSUE_ATTEMPTS
            )
            continue
        booking.codes = batch
        return batch

    raise Conflict(
        "Could not issue unique verification codes",
        ctx={"booking_id": booking.id, "attempts": config.CODE_ISSUE_ATTEMPTS}
    )
