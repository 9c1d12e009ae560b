from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Identity, Text, text, TIMESTAMP, Enum as SQLEnum
from ticketcore.core.database import Base
from datetime import datetime, timezone
from enum import Enum


class ActorRole(str, Enum):
    BUYER = "BUYER"
    ORGANIZER = "ORGANIZER"
    STAFF = "STAFF"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Identity(always=True), primary_key=True)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    phone_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[ActorRole] = mapped_column(SQLEnum(ActorRole, name="actor_role"), nullable=False,
                                            server_default=ActorRole.BUYER.value)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True),
                                                 default=lambda: datetime.now(timezone.utc),
                                                 server_default=text("timezone('utc', now())"),
                                                 nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
