"""
Records service: persists reward decisions and issuance attempts.

Public API
----------
save_process_result(result, db)                 -> ProcessRecord
save_batch_results(results, db)                 -> list[ProcessRecord]   (one transaction)
get_process_record(process_id, db)              -> ProcessRecord   (raises ProcessNotFoundError)
list_issuances(process_id, db)                  -> list[RewardIssuance]
claim_issuance(process_id, db)                  -> (ProcessRecord, pending RewardIssuance)
complete_issuance(row, outcome, db)             -> RewardIssuance
retry_issuance(process_id, db, orchestrator)    -> RewardIssuance  (raises IssuanceNotRetryableError)

The decision row is written once. Every delivery attempt, including the one
made inside the pipeline, is a separate RewardIssuance row. All functions
except retry_issuance are synchronous; async callers run them in the
threadpool.
"""
from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Optional, Sequence

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import IssuanceNotRetryableError, ProcessNotFoundError
from app.models.process_record import ProcessRecord
from app.models.reward_issuance import RewardIssuance
from app.services.orchestrator import (
    ActivityOrchestrator,
    IssuanceOutcome,
    IssuanceStatus,
    ProcessResult,
)

logger = logging.getLogger(__name__)


def _amount(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.0001"))


def _issuance_row(
    process_id: str,
    attempt: int,
    outcome: IssuanceOutcome,
    recipient: Optional[str],
    amount: float,
    token_tier: Optional[str],
) -> RewardIssuance:
    return RewardIssuance(
        process_id=process_id,
        attempt=attempt,
        status=outcome.status,
        recipient=recipient,
        amount=_amount(amount),
        token_tier=token_tier,
        transaction_reference=outcome.receipt.transaction_reference if outcome.receipt else None,
        error_kind=outcome.error_kind,
        error=outcome.error,
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _add_process_result(result: ProcessResult, db: Session) -> ProcessRecord:
    record = ProcessRecord(
        process_id=result.process_id,
        user_wallet=result.user_wallet,
        activity_type=result.activity_type,
        success=result.success,
        is_valid=bool(result.activity_validation and result.activity_validation.is_valid),
        reward_amount=_amount(result.reward_amount),
        token_tier=result.reward.token_tier.value if result.reward else None,
        verification_score=(
            result.verification.verification_score if result.verification else None
        ),
        sustainability_score=result.sustainability.score if result.sustainability else None,
        error_code=result.error_code,
        result=json.dumps(result.to_dict()),
    )
    db.add(record)

    issuance = result.issuance
    if issuance is not None and issuance.status is not IssuanceStatus.skipped:
        db.add(_issuance_row(
            result.process_id,
            attempt=1,
            outcome=issuance,
            recipient=result.user_wallet,
            amount=result.reward_amount,
            token_tier=record.token_tier,
        ))
    return record


def save_process_result(result: ProcessResult, db: Session) -> ProcessRecord:
    """Persist the decision and, if one was attempted, the first issuance."""
    record = _add_process_result(result, db)
    db.commit()
    db.refresh(record)
    return record


def save_batch_results(results: Sequence[ProcessResult], db: Session) -> list[ProcessRecord]:
    """Persist every decision of a batch in a single transaction."""
    records = [_add_process_result(result, db) for result in results]
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Could not store batch of %d results", len(results))
        raise
    return records


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_process_record(process_id: str, db: Session) -> ProcessRecord:
    record = db.execute(
        select(ProcessRecord).where(ProcessRecord.process_id == process_id)
    ).scalar_one_or_none()
    if record is None:
        raise ProcessNotFoundError(process_id)
    return record


def list_issuances(process_id: str, db: Session) -> list[RewardIssuance]:
    return list(db.execute(
        select(RewardIssuance)
        .where(RewardIssuance.process_id == process_id)
        .order_by(RewardIssuance.attempt)
    ).scalars())


def issuance_status(issuances: list[RewardIssuance]) -> Optional[str]:
    """Status of the latest attempt, or None when nothing was attempted."""
    if not issuances:
        return None
    status = issuances[-1].status
    return status.value if hasattr(status, "value") else str(status)


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

def claim_issuance(process_id: str, db: Session) -> tuple[ProcessRecord, RewardIssuance]:
    """
    Check that a stored decision may be re-delivered and commit a `pending`
    attempt row for it. The (process_id, attempt) unique constraint lets only
    one concurrent caller claim the next attempt.
    """
    record = get_process_record(process_id, db)
    if not record.success:
        raise IssuanceNotRetryableError(process_id, "processing fell back to the fallback reward")
    if not record.is_valid:
        raise IssuanceNotRetryableError(process_id, "activity did not pass validation")
    if record.reward_amount <= 0:
        raise IssuanceNotRetryableError(process_id, "reward amount is zero")

    attempts = list_issuances(process_id, db)
    latest = issuance_status(attempts)
    if latest == IssuanceStatus.issued.value:
        raise IssuanceNotRetryableError(process_id, "reward already issued")
    if latest == IssuanceStatus.pending.value:
        raise IssuanceNotRetryableError(process_id, "issuance already in progress")

    row = RewardIssuance(
        process_id=process_id,
        attempt=(attempts[-1].attempt if attempts else 0) + 1,
        status=IssuanceStatus.pending,
        recipient=record.user_wallet,
        amount=record.reward_amount,
        token_tier=record.token_tier,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise IssuanceNotRetryableError(process_id, "issuance already in progress")
    db.refresh(row)
    return record, row


def complete_issuance(row: RewardIssuance, outcome: IssuanceOutcome, db: Session) -> RewardIssuance:
    row.status = outcome.status
    row.transaction_reference = outcome.receipt.transaction_reference if outcome.receipt else None
    row.error_kind = outcome.error_kind
    row.error = outcome.error
    db.commit()
    db.refresh(row)
    return row


async def retry_issuance(
    process_id: str,
    db: Session,
    orchestrator: ActivityOrchestrator,
) -> RewardIssuance:
    """
    Re-deliver a stored reward decision. The decision itself is not
    recomputed; only successful, valid, positive, not-yet-issued rewards
    qualify. Database work runs in the threadpool.

    If the caller is cancelled while the issuer is working, the attempt
    stays `pending` and blocks further retries until it is reconciled.
    """
    record, row = await run_in_threadpool(claim_issuance, process_id, db)
    outcome = await orchestrator.issue_reward(
        process_id=process_id,
        recipient=record.user_wallet or "",
        amount=float(record.reward_amount),
        tier=record.token_tier or "basic",
        metadata={"activity_type": record.activity_type, "retry": True},
    )
    row = await run_in_threadpool(complete_issuance, row, outcome, db)
    logger.info("Issuance retry %d for %s: %s", row.attempt, process_id, outcome.status.value)
    return row
