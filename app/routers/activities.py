"""
Activities router.

POST /activities                     score one submission
POST /activities/batch               score up to 100 submissions concurrently
POST /activities/estimate            carbon / sustainability / impact estimate only
GET  /activities/{process_id}        stored decision and its issuance attempts
POST /activities/{process_id}/issue  retry reward delivery for a stored decision
"""
from __future__ import annotations

import json

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import BatchTooLargeError, EmptyBatchError
from app.db.base import get_db
from app.dependencies import get_orchestrator
from app.models.process_record import ProcessRecord
from app.models.reward_issuance import RewardIssuance
from app.schemas.activity import (
    ActivityCount,
    ActivitySubmissionRequest,
    BatchResponse,
    BatchSubmissionRequest,
    BatchSummaryOut,
    EstimateRequest,
    EstimateResponse,
    IssuanceOut,
    IssueCount,
    ProcessRecordResponse,
    ProcessResponse,
)
from app.schemas.common import ErrorResponse
from app.services.impact import (
    assess_environmental_impact,
    calculate_carbon_footprint,
    calculate_sustainability_score,
)
from app.services.orchestrator import (
    ActivityOrchestrator,
    BatchResult,
    BatchSummary,
    ProcessResult,
    jsonable,
)
from app.services.records import (
    get_process_record,
    issuance_status,
    list_issuances,
    retry_issuance,
    save_batch_results,
    save_process_result,
)

router = APIRouter(prefix="/activities", tags=["activities"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> str:
    """Extract bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def _result_to_response(result: ProcessResult) -> ProcessResponse:
    return ProcessResponse(**result.to_dict())


def _summary_to_response(s: BatchSummary) -> BatchSummaryOut:
    return BatchSummaryOut(
        total=s.total,
        successful=s.successful,
        failed=s.failed,
        success_rate=round(s.success_rate, 2),
        total_rewards=round(s.total_rewards, 4),
        average_sustainability_score=round(s.average_sustainability_score, 2),
        top_activities=[ActivityCount(activity_type=t, count=c) for t, c in s.top_activities],
        common_issues=[IssueCount(code=code, count=c) for code, c in s.common_issues],
    )


def _batch_to_response(batch: BatchResult) -> BatchResponse:
    return BatchResponse(
        batch_id=batch.batch_id,
        processed_at=batch.processed_at.isoformat(),
        summary=_summary_to_response(batch.summary),
        results=[_result_to_response(r) for r in batch.results],
    )


def _issuance_to_response(row: RewardIssuance) -> IssuanceOut:
    return IssuanceOut(
        id=row.id,
        attempt=row.attempt,
        status=_ev(row.status),
        recipient=row.recipient,
        amount=float(row.amount),
        token_tier=row.token_tier,
        transaction_reference=row.transaction_reference,
        error_kind=row.error_kind,
        error=row.error,
        created_at=row.created_at.isoformat() if row.created_at else "",
    )


def _record_to_response(record: ProcessRecord, issuances: list[RewardIssuance]) -> ProcessRecordResponse:
    return ProcessRecordResponse(
        process_id=record.process_id,
        success=record.success,
        activity_type=record.activity_type,
        user_wallet=record.user_wallet,
        is_valid=record.is_valid,
        reward_amount=float(record.reward_amount),
        token_tier=record.token_tier,
        verification_score=record.verification_score,
        sustainability_score=record.sustainability_score,
        error_code=record.error_code,
        issuance_status=issuance_status(issuances),
        issuances=[_issuance_to_response(i) for i in issuances],
        result=json.loads(record.result),
        created_at=record.created_at.isoformat() if record.created_at else "",
    )


# ---------------------------------------------------------------------------
# POST /activities - single
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ProcessResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Score one eco-activity and issue its reward",
    responses={
        201: {"description": "Processed. Inspect `success`: failures carry a fallback reward."},
        422: {"model": ErrorResponse, "description": "Malformed request body."},
    },
)
async def submit_activity(
    payload: ActivitySubmissionRequest,
    db: Session = Depends(get_db),
    orchestrator: ActivityOrchestrator = Depends(get_orchestrator),
):
    """
    Run the full pipeline: photo verification, environmental analysis,
    activity validation, behavior analysis, reward calculation, gamification,
    and issuance when the reward is positive and the activity valid.

    The decision is stored and can be fetched later by `process_id`.
    A pipeline failure is not an HTTP error: the body has `success: false`
    and a fixed `fallback_reward`.
    """
    result = await orchestrator.process_activity(payload.to_submission())
    await run_in_threadpool(save_process_result, result, db)
    return _result_to_response(result)


# ---------------------------------------------------------------------------
# POST /activities/batch
# ---------------------------------------------------------------------------

@router.post(
    "/batch",
    response_model=BatchResponse,
    status_code=status.HTTP_207_MULTI_STATUS,
    summary="Score a batch of eco-activities (up to 100)",
    responses={
        207: {"description": "Multi-status: check each result's `success` field."},
        422: {"model": ErrorResponse, "description": "Batch-level validation error (empty list, too many items)."},
    },
)
async def submit_batch(
    payload: BatchSubmissionRequest,
    db: Session = Depends(get_db),
    orchestrator: ActivityOrchestrator = Depends(get_orchestrator),
):
    """
    Items are independent and processed concurrently; results keep input order.
    One failing item never affects the others. All decisions are stored in a
    single transaction once the whole batch has been processed.
    """
    if not payload.items:
        raise EmptyBatchError()
    if len(payload.items) > settings.BATCH_MAX_ITEMS:
        raise BatchTooLargeError(max_items=settings.BATCH_MAX_ITEMS, received=len(payload.items))

    batch = await orchestrator.process_batch([item.to_submission() for item in payload.items])
    await run_in_threadpool(save_batch_results, batch.results, db)
    return _batch_to_response(batch)


# ---------------------------------------------------------------------------
# POST /activities/estimate
# ---------------------------------------------------------------------------

@router.post(
    "/estimate",
    response_model=EstimateResponse,
    summary="Estimate environmental impact before submitting",
)
def estimate_activity(payload: EstimateRequest):
    """Pure calculation: no photo, no reward, nothing stored."""
    descriptor = payload.to_descriptor()
    return EstimateResponse(
        activity_type=payload.activity_type,
        carbon_footprint=jsonable(calculate_carbon_footprint(descriptor)),
        sustainability=jsonable(calculate_sustainability_score(descriptor)),
        impact_assessment=jsonable(assess_environmental_impact(descriptor)),
    )


# ---------------------------------------------------------------------------
# GET /activities/{process_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{process_id}",
    response_model=ProcessRecordResponse,
    summary="Fetch a stored reward decision",
    responses={404: {"model": ErrorResponse, "description": "Unknown process_id."}},
)
def get_activity(process_id: str, db: Session = Depends(get_db)):
    record = get_process_record(process_id, db)
    return _record_to_response(record, list_issuances(process_id, db))


# ---------------------------------------------------------------------------
# POST /activities/{process_id}/issue
# ---------------------------------------------------------------------------

@router.post(
    "/{process_id}/issue",
    response_model=IssuanceOut,
    summary="Retry reward delivery for a stored decision",
    responses={
        404: {"model": ErrorResponse, "description": "Unknown process_id."},
        409: {"model": ErrorResponse, "description": "Not eligible for issuance, or already issued."},
    },
)
async def issue_activity_reward(
    process_id: str,
    db: Session = Depends(get_db),
    orchestrator: ActivityOrchestrator = Depends(get_orchestrator),
):
    """
    Re-delivers the stored amount; the reward is never recomputed. The new
    attempt is returned whether it succeeded or failed (`status`).
    """
    row = await retry_issuance(process_id, db, orchestrator)
    return _issuance_to_response(row)
