"""
Tests for the records service.

Covers:
- Saving successful and fallback results
- First issuance attempt stored separately from the decision
- Retry rules: fallback, invalid, zero reward, already issued
- Retry after a failed delivery appends a new attempt
- Concurrent retries: a pending claim lets only one delivery through
- Batch results stored in one transaction
"""
import asyncio
import json

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import TINY_PHOTO, TOKEN_CONTRACT, TestingSessionLocal, build_orchestrator
from app.core.errors import IssuanceNotRetryableError, ProcessNotFoundError
from app.services.collaborators import SimulatedRewardIssuer
from app.services import records
from app.services.records import (
    claim_issuance,
    get_process_record,
    issuance_status,
    list_issuances,
    retry_issuance,
    save_batch_results,
    save_process_result,
)
from app.services.submission import SubmissionMetadata, UserProfile


def _process(orchestrator, submission, db):
    result = asyncio.run(orchestrator.process_activity(submission))
    return result, save_process_result(result, db)


class TestSave:
    def test_successful_result(self, db, orchestrator, make_submission):
        result, record = _process(orchestrator, make_submission(), db)
        assert record.id is not None
        assert record.success is True
        assert record.is_valid is True
        assert float(record.reward_amount) == pytest.approx(36.75)
        assert record.token_tier == "premium"
        assert record.verification_score == 90
        assert record.sustainability_score == 95
        assert json.loads(record.result)["process_id"] == result.process_id

        issuances = list_issuances(result.process_id, db)
        assert len(issuances) == 1
        assert issuances[0].attempt == 1
        assert issuance_status(issuances) == "issued"
        assert issuances[0].transaction_reference.startswith("0x")

    def test_fallback_result(self, db, orchestrator, make_submission):
        result, record = _process(orchestrator, make_submission(activity_type="skydiving"), db)
        assert record.success is False
        assert record.error_code == "VALIDATION_ERROR"
        assert float(record.reward_amount) == 0.0
        assert record.token_tier is None
        assert list_issuances(result.process_id, db) == []

    def test_skipped_issuance_not_stored(self, db, orchestrator, make_submission):
        result, _ = _process(
            orchestrator, make_submission(photo_data=TINY_PHOTO, metadata=SubmissionMetadata()), db,
        )
        assert issuance_status(list_issuances(result.process_id, db)) is None

    def test_lookup(self, db, orchestrator, make_submission):
        result, _ = _process(orchestrator, make_submission(), db)
        assert get_process_record(result.process_id, db).process_id == result.process_id

    def test_unknown_process(self, db):
        with pytest.raises(ProcessNotFoundError):
            get_process_record("eco_0_missing", db)


class TestRetry:
    def test_retry_after_failed_delivery(self, db, make_submission):
        orchestrator = build_orchestrator(issuer=SimulatedRewardIssuer(TOKEN_CONTRACT, budget=0.0))
        result, _ = _process(orchestrator, make_submission(), db)
        assert issuance_status(list_issuances(result.process_id, db)) == "failed"

        orchestrator.issuer = SimulatedRewardIssuer(TOKEN_CONTRACT)
        row = asyncio.run(retry_issuance(result.process_id, db, orchestrator))
        assert row.attempt == 2
        assert issuance_status(list_issuances(result.process_id, db)) == "issued"
        assert float(row.amount) == pytest.approx(36.75)

    def test_failed_retry_is_recorded(self, db, make_submission):
        orchestrator = build_orchestrator(issuer=SimulatedRewardIssuer(TOKEN_CONTRACT, budget=0.0))
        result, _ = _process(orchestrator, make_submission(), db)
        row = asyncio.run(retry_issuance(result.process_id, db, orchestrator))
        assert row.attempt == 2
        assert row.error_kind == "insufficient_funds"
        assert len(list_issuances(result.process_id, db)) == 2

    def test_already_issued(self, db, orchestrator, make_submission):
        result, _ = _process(orchestrator, make_submission(), db)
        with pytest.raises(IssuanceNotRetryableError) as exc_info:
            asyncio.run(retry_issuance(result.process_id, db, orchestrator))
        assert exc_info.value.details["reason"] == "reward already issued"

    def test_fallback_not_retryable(self, db, orchestrator, make_submission):
        result, _ = _process(orchestrator, make_submission(user_wallet=""), db)
        with pytest.raises(IssuanceNotRetryableError):
            asyncio.run(retry_issuance(result.process_id, db, orchestrator))

    def test_invalid_activity_not_retryable(self, db, orchestrator, make_submission):
        result, _ = _process(
            orchestrator, make_submission(photo_data=TINY_PHOTO, metadata=SubmissionMetadata()), db,
        )
        with pytest.raises(IssuanceNotRetryableError) as exc_info:
            asyncio.run(retry_issuance(result.process_id, db, orchestrator))
        assert exc_info.value.http_status == 409

    def test_zero_reward_not_retryable(self, db, orchestrator, make_submission):
        result, _ = _process(
            orchestrator, make_submission(user_profile=UserProfile(daily_earned=100)), db,
        )
        with pytest.raises(IssuanceNotRetryableError) as exc_info:
            asyncio.run(retry_issuance(result.process_id, db, orchestrator))
        assert "zero" in exc_info.value.message


class GatedIssuer(SimulatedRewardIssuer):
    """Holds every delivery until `release` is set."""

    def __init__(self):
        super().__init__(TOKEN_CONTRACT)
        self.calls = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def issue(self, request):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return await super().issue(request)


class TestConcurrentRetry:
    def test_second_retry_while_first_in_flight(self, db, make_submission):
        orchestrator = build_orchestrator(issuer=SimulatedRewardIssuer(TOKEN_CONTRACT, budget=0.0))
        result, _ = _process(orchestrator, make_submission(), db)
        issuer = GatedIssuer()
        orchestrator.issuer = issuer
        first_db, second_db = TestingSessionLocal(), TestingSessionLocal()

        async def main():
            first = asyncio.create_task(retry_issuance(result.process_id, first_db, orchestrator))
            await issuer.started.wait()
            with pytest.raises(IssuanceNotRetryableError) as exc_info:
                await retry_issuance(result.process_id, second_db, orchestrator)
            issuer.release.set()
            return exc_info.value, await first

        try:
            conflict, row = asyncio.run(main())
        finally:
            first_db.close()
            second_db.close()

        assert conflict.details["reason"] == "issuance already in progress"
        assert issuer.calls == 1
        assert row.attempt == 2
        check_db = TestingSessionLocal()
        try:
            attempts = [(r.attempt, issuance_status([r])) for r in list_issuances(result.process_id, check_db)]
        finally:
            check_db.close()
        assert attempts == [(1, "failed"), (2, "issued")]

    def test_pending_attempt_blocks_retry(self, db, make_submission):
        orchestrator = build_orchestrator(issuer=SimulatedRewardIssuer(TOKEN_CONTRACT, budget=0.0))
        result, _ = _process(orchestrator, make_submission(), db)
        _, row = claim_issuance(result.process_id, db)
        assert issuance_status([row]) == "pending"
        with pytest.raises(IssuanceNotRetryableError) as exc_info:
            asyncio.run(retry_issuance(result.process_id, db, orchestrator))
        assert exc_info.value.http_status == 409
        assert exc_info.value.details["reason"] == "issuance already in progress"

    def test_lost_claim_race_is_a_conflict(self, db, make_submission, monkeypatch):
        orchestrator = build_orchestrator(issuer=SimulatedRewardIssuer(TOKEN_CONTRACT, budget=0.0))
        result, _ = _process(orchestrator, make_submission(), db)
        stale = list_issuances(result.process_id, db)
        claim_issuance(result.process_id, db)

        # The loser read the attempts before the winner committed its claim.
        monkeypatch.setattr(records, "list_issuances", lambda process_id, session: stale)
        other_db = TestingSessionLocal()
        try:
            with pytest.raises(IssuanceNotRetryableError) as exc_info:
                claim_issuance(result.process_id, other_db)
        finally:
            other_db.close()
        assert exc_info.value.details["reason"] == "issuance already in progress"
        monkeypatch.undo()
        assert len(list_issuances(result.process_id, db)) == 2


class TestSaveBatch:
    def test_all_results_stored(self, db, orchestrator, make_submission):
        async def main():
            return await asyncio.gather(
                orchestrator.process_activity(make_submission()),
                orchestrator.process_activity(make_submission(activity_type="skydiving")),
                orchestrator.process_activity(make_submission(activity_type="recycling")),
            )
        results = asyncio.run(main())
        stored = save_batch_results(results, db)
        assert [r.process_id for r in stored] == [r.process_id for r in results]
        assert all(r.id is not None for r in stored)
        assert [get_process_record(r.process_id, db).success for r in results] == [True, False, True]

    def test_failed_commit_stores_nothing(self, db, orchestrator, make_submission):
        result = asyncio.run(orchestrator.process_activity(make_submission()))
        with pytest.raises(IntegrityError):
            save_batch_results([result, result], db)
        with pytest.raises(ProcessNotFoundError):
            get_process_record(result.process_id, db)
