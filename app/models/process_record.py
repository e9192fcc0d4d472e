"""
ProcessRecord: one row per orchestrated submission, success or fallback.

Records are written after the decision is final and are never read back
into scoring. `result` holds the JSON-encoded ProcessResult.to_dict() as
Text, the same way other JSON payloads are stored.
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ProcessRecord(Base):
    __tablename__ = "process_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    process_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    user_wallet: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    activity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reward_amount: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False, default=0)
    token_tier: Mapped[str | None] = mapped_column(String(16), nullable=True)
    verification_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sustainability_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    result: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment="JSON-encoded ProcessResult as returned to the client",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
