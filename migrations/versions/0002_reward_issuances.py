"""add reward_issuances table

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

One row per delivery attempt, unique per (process_id, attempt). Retries
append rows, claiming each attempt as `pending` before the issuer is
called; the reward decision in process_records is never rewritten.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    issuance_status_enum = sa.Enum("pending", "issued", "failed", "skipped", name="issuance_status_enum")
    issuance_status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "reward_issuances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("process_id", sa.String(64), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.Enum(
            "pending", "issued", "failed", "skipped",
            name="issuance_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("recipient", sa.String(128), nullable=True),
        sa.Column("amount", sa.Numeric(18, 4), nullable=False),
        sa.Column("token_tier", sa.String(16), nullable=True),
        sa.Column("transaction_reference", sa.String(128), nullable=True),
        sa.Column("error_kind", sa.String(32), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("process_id", "attempt", name="uq_reward_issuances_process_attempt"),
    )
    op.create_index("ix_reward_issuances_id", "reward_issuances", ["id"])
    op.create_index("ix_reward_issuances_process_id", "reward_issuances", ["process_id"])


def downgrade() -> None:
    op.drop_index("ix_reward_issuances_process_id", table_name="reward_issuances")
    op.drop_index("ix_reward_issuances_id", table_name="reward_issuances")
    op.drop_table("reward_issuances")
    sa.Enum(name="issuance_status_enum").drop(op.get_bind(), checkfirst=True)
