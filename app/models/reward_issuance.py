"""
RewardIssuance: one row per attempt to deliver a reward through the issuer.

Kept apart from ProcessRecord so a failed delivery never rewrites the
reward decision; retries append new rows with an incremented `attempt`,
each committed as `pending` before the issuer is called. The unique
(process_id, attempt) pair lets only one concurrent retry claim an attempt.
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.services.orchestrator import IssuanceStatus


class RewardIssuance(Base):
    __tablename__ = "reward_issuances"
    __table_args__ = (
        UniqueConstraint("process_id", "attempt", name="uq_reward_issuances_process_attempt"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    process_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        Enum(IssuanceStatus, name="issuance_status_enum"),
        nullable=False,
    )
    recipient: Mapped[str | None] = mapped_column(String(128), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    token_tier: Mapped[str | None] = mapped_column(String(16), nullable=True)
    transaction_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    error_kind: Mapped[str | None] = mapped_column(String(32), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
