import asyncio
from sqlalchemy import select
from ticketcore.core.config import STAFF_EMAIL
from ticketcore.core.database import AsyncSessionLocal
from ticketcore.core.security import create_access_token
from ticketcore.domain.actors.models import User, ActorRole


async def seed_staff_user(db) -> User | None:
    if not STAFF_EMAIL:
        print("Missing STAFF_EMAIL - skipping seed...")
        return None

    user = await db.scalar(select(User).where(User.email == STAFF_EMAIL))
    if not user:
        user = User(first_name="Platform", last_name="Staff", email=STAFF_EMAIL, role=ActorRole.STAFF)
        db.add(user)
    else:
        user.role = ActorRole.STAFF
        user.is_active = True

    await db.flush()
    return user


async def main():
    async with AsyncSessionLocal() as db:
        user = await seed_staff_user(db)
        await db.commit()
        if user:
            print(f"Staff OK: {user.email}")
            print(f"Access token (15 min): {create_access_token(user.id)}")


if __name__ == "__main__":
    asyncio.run(main())
