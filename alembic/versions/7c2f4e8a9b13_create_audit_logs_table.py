"""create audit_logs table with partitioning

Revision ID: 7c2f4e8a9b13
Revises: 3b1e7c9d2a41
Create Date: 2026-10-18 10:31:02.117403
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa  # noqa


# revision identifiers, used by Alembic.
revision: str = "7c2f4e8a9b13"
down_revision: Union[str, Sequence[str], None] = "3b1e7c9d2a41"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS audit")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS audit.audit_logs(
            id BIGINT GENERATED ALWAYS AS IDENTITY,
            ts_utc timestamptz NOT NULL DEFAULT now(),
            request_id text,
            scope text NOT NULL,
            action text NOT NULL,
            actor_user_id bigint,
            actor_role text,
            actor_ip inet,
            route text,
            object_type text,
            object_id bigint,
            event_id bigint,
            booking_id bigint,
            status text NOT NULL,
            reason text,
            meta jsonb NOT NULL DEFAULT '{}'::jsonb,
            CONSTRAINT chk_audit_status CHECK (status IN ('SUCCESS','FAIL')),
            PRIMARY KEY (ts_utc, id)
        ) PARTITION BY RANGE (ts_utc)
        """
    )

    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_ts ON audit.audit_logs (ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_actor_ts ON audit.audit_logs (actor_user_id, ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_action_ts ON audit.audit_logs (action, ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_obj ON audit.audit_logs (object_type, object_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_event ON audit.audit_logs (event_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_booking ON audit.audit_logs (booking_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_meta_gin ON audit.audit_logs USING gin (meta jsonb_path_ops)")

    for year, month in ((2026, 10), (2026, 11), (2026, 12)):
        nxt_year, nxt_month = (year + 1, 1) if month == 12 else (year, month + 1)
        op.execute(
            f"""
            CREATE TABLE IF NOT EXISTS audit.audit_logs_{year}_{month:02d}
              PARTITION OF audit.audit_logs
              FOR VALUES FROM (TIMESTAMPTZ '{year}-{month:02d}-01 00:00:00+00')
                           TO (TIMESTAMPTZ '{nxt_year}-{nxt_month:02d}-01 00:00:00+00')
            """
        )
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS audit.audit_logs_default
          PARTITION OF audit.audit_logs DEFAULT
        """
    )


def downgrade() -> None:
    op.execute("DROP SCHEMA IF EXISTS audit CASCADE")
