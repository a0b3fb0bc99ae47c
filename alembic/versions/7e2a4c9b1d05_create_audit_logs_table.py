"""create audit_logs table

Revision ID: 7e2a4c9b1d05
Revises: 3c1f9a7d2b40
Create Date: 2026-10-19 10:40:02.561870
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa  # noqa


revision: str = "7e2a4c9b1d05"
down_revision: Union[str, Sequence[str], None] = "3c1f9a7d2b40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS audit")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS audit.audit_logs(
            id BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
            ts_utc timestamptz NOT NULL DEFAULT now(),
            request_id text,
            scope text NOT NULL,
            action text NOT NULL,
            actor_ip inet,
            route text,
            tenant_slug text,
            object_type text,
            object_id text,
            tenant_id uuid,
            client_id uuid,
            invoice_id uuid,
            status text NOT NULL,
            reason text,
            meta jsonb NOT NULL DEFAULT '{}'::jsonb,
            CONSTRAINT chk_audit_status CHECK (status IN ('SUCCESS','FAIL'))
        )
        """
    )

    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_ts ON audit.audit_logs (ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_action_ts ON audit.audit_logs (action, ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_tenant_ts ON audit.audit_logs (tenant_id, ts_utc DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_invoice ON audit.audit_logs (invoice_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_audit_logs_meta_gin ON audit.audit_logs USING gin (meta jsonb_path_ops)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS audit.audit_logs")
    op.execute("DROP SCHEMA IF EXISTS audit")
