from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from typing import Annotated
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.core.database import get_db
from ticketcore.core.security import decode_access_token
from ticketcore.domain.actors.directory import Actor, SqlActorDirectory
from ticketcore.domain.actors.models import ActorRole
from ticketcore.domain.actors.schemas import TokenPayload
from ticketcore.domain.exceptions import Unauthorized, Forbidden
from ticketcore.core.ctx import AUTH_ROLE_CTX, AUTH_USER_ID_CTX


oauth2_bearer = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_token_payload(token: Annotated[str, Depends(oauth2_bearer)]) -> TokenPayload:
    try:
        raw_payload = decode_access_token(token)
        if raw_payload.get("typ") != "access":
            raise Unauthorized("Invalid token type", ctx={"reason": "invalid_type"})
        return TokenPayload.model_validate(raw_payload)
    except (JWTError, ValidationError):
        raise Unauthorized("Invalid authentication credentials", ctx={"reason": "invalid_token"})


def get_current_actor(*allowed_roles: ActorRole):
    allowed = set(allowed_roles)

    async def _inner(payload: Annotated[TokenPayload, Depends(get_token_payload)],
                     db: Annotated[AsyncSession, Depends(get_db)]) -> Actor:
        try:
            actor_id = int(payload.sub)
        except ValueError:
            raise Unauthorized("Invalid authentication credentials", ctx={"reason": "invalid_subject"})

        actor = await SqlActorDirectory(db).find_by_id(actor_id)
        if not actor:
            raise Unauthorized("User not found", ctx={"user_id": payload.sub})

        AUTH_ROLE_CTX.set(actor.role.value)
        AUTH_USER_ID_CTX.set(actor.id)

        if allowed and actor.role not in allowed:
            raise Forbidden(
                "Permission denied",
                ctx={"required": [r.value for r in allowed_roles], "user_role": actor.role.value}
            )
        return actor
    return _inner
