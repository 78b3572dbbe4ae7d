"""commitment_ledger 테이블 (점수 변경 기록 + 멱등 키)

Revision ID: 003
Revises: 002
Create Date: 2026-09-01 00:00:02.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "commitment_ledger",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("plan_id", sa.Integer(), nullable=True),
        sa.Column("outcome", sa.String(length=30), nullable=False),
        sa.Column("change", sa.Integer(), nullable=False),
        sa.Column("previous_score", sa.Integer(), nullable=False),
        sa.Column("new_score", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("idempotency_key"),
    )
    op.create_index(op.f("ix_commitment_ledger_id"), "commitment_ledger", ["id"], unique=False)
    op.create_index(op.f("ix_commitment_ledger_user_id"), "commitment_ledger", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_commitment_ledger_user_id"), table_name="commitment_ledger")
    op.drop_index(op.f("ix_commitment_ledger_id"), table_name="commitment_ledger")
    op.drop_table("commitment_ledger")
