"""unique open free registration per user and event

Revision ID: a4d81c6e2f57
Revises: 7c2f4e8a9b13
Create Date: 2026-10-18 16:05:44.520918
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a4d81c6e2f57"
down_revision: Union[str, Sequence[str], None] = "7c2f4e8a9b13"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_index(
        "uq_bookings_free_registration_open",
        "bookings",
        ["user_id", "event_id"],
        unique=True,
        postgresql_where=sa.text("final_amount = 0 AND status IN ('PENDING', 'CONFIRMED')")
    )


def downgrade() -> None:
    op.drop_index("uq_bookings_free_registration_open", table_name="bookings")
