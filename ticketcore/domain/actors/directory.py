from dataclasses import dataclass
from typing import Protocol
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from ticketcore.domain.actors.models import User, ActorRole


@dataclass(frozen=True)
class Actor:
    id: int
    role: ActorRole
    first_name: str
    last_name: str
    email: str
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ActorDirectory(Protocol):
    async def find_by_id(self, actor_id: int) -> Actor | None: ...


def actor_from_user(user: User) -> Actor:
    return Actor(
        id=user.id,
        role=user.role,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone=user.phone_number,
    )


class SqlActorDirectory:
    """Resolves actors of every role from the single `users` table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_by_id(self, actor_id: int) -> Actor | None:
        user = await self.db.scalar(select(User).where(User.id == actor_id, User.is_active.is_(True)))
        return actor_from_user(user) if user else None


def can_organize(actor: Actor, organizer_id: int) -> bool:
    match actor.role:
        case ActorRole.STAFF:
            return True
        case ActorRole.ORGANIZER:
            return actor.id == organizer_id
        case _:
            return False


def can_buy(actor: Actor, organizer_id: int) -> bool:
    match actor.role:
        case ActorRole.BUYER:
            return actor.id != organizer_id
        case _:
            return False
