"""process_records table

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

One row per orchestrated submission. `result` keeps the JSON body that was
returned to the client.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "process_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("process_id", sa.String(64), nullable=False),
        sa.Column("user_wallet", sa.String(128), nullable=True),
        sa.Column("activity_type", sa.String(64), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("is_valid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reward_amount", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("token_tier", sa.String(16), nullable=True),
        sa.Column("verification_score", sa.Integer(), nullable=True),
        sa.Column("sustainability_score", sa.Integer(), nullable=True),
        sa.Column("error_code", sa.String(64), nullable=True),
        sa.Column("result", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_process_records_id", "process_records", ["id"])
    op.create_index("ix_process_records_process_id", "process_records", ["process_id"], unique=True)
    op.create_index("ix_process_records_user_wallet", "process_records", ["user_wallet"])


def downgrade() -> None:
    op.drop_index("ix_process_records_user_wallet", table_name="process_records")
    op.drop_index("ix_process_records_process_id", table_name="process_records")
    op.drop_index("ix_process_records_id", table_name="process_records")
    op.drop_table("process_records")
