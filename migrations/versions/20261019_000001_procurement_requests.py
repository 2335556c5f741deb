"""Procurement request store

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op

from health_procure.db import schema_statements


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _backend() -> str:
    dialect = (op.get_bind().dialect.name or "").lower()
    if dialect.startswith("postgres"):
        return "postgres"
    return "sqlite"


def upgrade() -> None:
    for statement in schema_statements(_backend()):
        op.execute(statement)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_procurement_requests_status")
    op.execute("DROP INDEX IF EXISTS idx_procurement_requests_submitted_by")
    op.execute("DROP TABLE IF EXISTS procurement_requests")
