import hmac
from fastapi import Header
from typing import Annotated
from ticketcore.core import config
from ticketcore.domain.exceptions import Unauthorized


async def require_webhook_secret(
        webhook_secret: Annotated[str | None, Header(alias="X-Webhook-Secret")] = None
) -> None:
    expected = config.PAYMENT_WEBHOOK_SECRET
    if not expected or not webhook_secret or not hmac.compare_digest(webhook_secret, expected):
        raise Unauthorized("Invalid webhook signature", ctx={"reason": "invalid_webhook_secret"})
