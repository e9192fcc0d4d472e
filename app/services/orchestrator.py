"""
Activity orchestrator: runs one submission through every scoring component
and always hands back a ProcessResult.

Pipeline (strictly ordered)
---------------------------
  0. validate submission, load profile (if absent), resolve photo bytes
  1. photo verification            (five concurrent sub-checks)
  2. impact assessment, carbon estimate, sustainability score
  3. activity validation           (second pass, mean of five checks > 70)
  4. behavior analysis
  5. reward calculation
  6. gamification strategy          (presentation only)
  7. reward issuance                only if reward > 0 and step 3 is valid
  8. compile result, record metrics

Failure contract
----------------
Any error in steps 0-6 aborts the submission and yields success=False with
a fixed fallback reward. The submission timeout bounds steps 0-6 only and
feeds the same fallback path. Issuance runs once the decision is final,
under its own timeout: an issuer error or expiry becomes a failed
IssuanceOutcome, the reward decision stands and can be re-delivered later.
Cancellation propagates and leaves the metrics untouched.

Public API
----------
ActivityOrchestrator.process_activity(submission)  -> ProcessResult
ActivityOrchestrator.process_batch(submissions)    -> BatchResult
ActivityOrchestrator.monitor_stream(source)        -> ActivitySubscription
ActivityOrchestrator.issue_reward(...)             -> IssuanceOutcome
summarize(results)                                 -> BatchSummary
"""
from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
import uuid
from collections import Counter, deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, is_dataclass, replace
from datetime import datetime
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterable, Iterator, Optional, Sequence

from app.core.config import settings
from app.core.errors import (
    EcoHuntException,
    IssuanceError,
    PipelineFailure,
    SubmissionTimeoutError,
    SubmissionValidationError,
)
from app.services.behavior import BehaviorAnalyzer, BehaviorMetrics, BehaviorProfile
from app.services.collaborators import (
    InlinePhotoStore,
    IssuanceReceipt,
    IssuanceRequest,
    PhotoStore,
    RewardIssuer,
    SimulatedRewardIssuer,
    UserProfileStore,
)
from app.services.detectors import HeuristicPhotoDetector, PhotoDetector
from app.services.gamification import GamificationStrategy, build_strategy
from app.services.impact import (
    ActivityDescriptor,
    ActivityValidation,
    CarbonFootprint,
    ImpactAssessment,
    SustainabilityScore,
    assess_environmental_impact,
    calculate_carbon_footprint,
    calculate_sustainability_score,
    validate_activity,
)
from app.services.photo_verification import (
    PhotoVerificationScorer,
    SubcheckFailurePolicy,
    VerificationResult,
    extract_score,
)
from app.services.rewards import RewardActivity, RewardCalculator, RewardResult, SeasonalMode
from app.services.submission import ActivitySubmission, utcnow, validate_submission

logger = logging.getLogger(__name__)

ORCHESTRATOR_VERSION = "1.0.0"
FALLBACK_RECOMMENDATION = "Please resubmit with higher quality photo and complete metadata"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class IssuanceStatus(str, enum.Enum):
    pending = "pending"      # attempt claimed, issuer not answered yet
    issued = "issued"
    failed = "failed"
    skipped = "skipped"


@dataclass(frozen=True)
class IssuanceOutcome:
    status: IssuanceStatus
    receipt: Optional[IssuanceReceipt] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None


@dataclass(frozen=True)
class FallbackReward:
    token_amount: float
    reason: str
    recommendation: str = FALLBACK_RECOMMENDATION


@dataclass(frozen=True)
class ProcessResult:
    process_id: str
    success: bool
    timestamp: datetime
    activity_type: Optional[str] = None
    user_wallet: Optional[str] = None
    verification: Optional[VerificationResult] = None
    activity_validation: Optional[ActivityValidation] = None
    impact_assessment: Optional[ImpactAssessment] = None
    carbon_footprint: Optional[CarbonFootprint] = None
    sustainability: Optional[SustainabilityScore] = None
    behavior: Optional[BehaviorProfile] = None
    reward: Optional[RewardResult] = None
    gamification: Optional[GamificationStrategy] = None
    issuance: Optional[IssuanceOutcome] = None
    processing_time_ms: float = 0.0
    error: Optional[str] = None
    error_code: Optional[str] = None
    fallback_reward: Optional[FallbackReward] = None

    @property
    def reward_amount(self) -> float:
        return self.reward.reward_amount if self.success and self.reward else 0.0

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible record."""
        head = {
            "process_id": self.process_id,
            "success": self.success,
            "timestamp": self.timestamp.isoformat(),
            "activity_type": self.activity_type,
        }
        if not self.success:
            return jsonable({
                **head,
                "error": self.error,
                "error_code": self.error_code,
                "fallback_reward": self.fallback_reward,
                "metadata": {"processing_time_ms": self.processing_time_ms},
            })

        verification = self.verification
        validation = self.activity_validation
        return jsonable({
            **head,
            "verification": {
                "is_verified": verification.is_verified and validation.is_valid,
                "confidence": (verification.confidence + validation.confidence) / 2,
                "photo_analysis": verification,
                "activity_validation": validation,
            },
            "environmental_analysis": {
                "impact_assessment": self.impact_assessment,
                "carbon_footprint": self.carbon_footprint,
                "sustainability_score": self.sustainability.score,
                "sustainability_breakdown": self.sustainability.breakdown,
            },
            "user_analysis": {
                "behavior_score": self.behavior.behavior_score,
                "behavior": self.behavior,
                "recommendations": self.behavior.recommendations,
                "risk_flags": self.behavior.risk_flags,
            },
            "rewards": {
                "token_amount": self.reward.reward_amount,
                "reward_tier": self.reward.token_tier,
                "breakdown": self.reward.breakdown,
                "next_level_incentive": self.reward.next_level_incentive,
                "bonus_details": self.reward.bonus_details,
                "error": self.reward.error,
            },
            "gamification": self.gamification,
            "issuance": self.issuance,
            "metadata": {
                "processing_time_ms": self.processing_time_ms,
                "orchestrator_version": ORCHESTRATOR_VERSION,
            },
        })


@dataclass(frozen=True)
class BatchSummary:
    total: int
    successful: int
    failed: int
    success_rate: float
    total_rewards: float
    average_sustainability_score: float
    top_activities: list[tuple[str, int]] = field(default_factory=list)
    common_issues: list[tuple[str, int]] = field(default_factory=list)


@dataclass(frozen=True)
class BatchResult:
    batch_id: str
    results: list[ProcessResult]
    summary: BatchSummary
    processed_at: datetime


@dataclass(frozen=True)
class OrchestratorMetrics:
    total_processed: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0
    average_processing_ms: float = 0.0


def jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, enums and datetimes for JSON."""
    if is_dataclass(value) and not isinstance(value, type):
        return jsonable(asdict(value))
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if isinstance(value, bytes):
        return None
    return value


# ---------------------------------------------------------------------------
# Running metrics
# ---------------------------------------------------------------------------

class MetricsRecorder:
    """Single-writer aggregate; every update happens under one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics = OrchestratorMetrics()

    def record(self, processing_ms: float, success: bool) -> None:
        with self._lock:
            m = self._metrics
            total = m.total_processed + 1
            successful = m.successful + (1 if success else 0)
            self._metrics = OrchestratorMetrics(
                total_processed=total,
                successful=successful,
                failed=total - successful,
                success_rate=round(successful / total * 100, 2),
                average_processing_ms=(
                    m.average_processing_ms + (processing_ms - m.average_processing_ms) / total
                ),
            )

    def snapshot(self) -> OrchestratorMetrics:
        with self._lock:
            return self._metrics

    def reset(self) -> None:
        with self._lock:
            self._metrics = OrchestratorMetrics()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _new_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@contextmanager
def _pipeline_step(name: str) -> Iterator[None]:
    """Tag unexpected errors with the step that raised them."""
    try:
        yield
    except EcoHuntException:
        raise
    except Exception as exc:
        raise PipelineFailure(name, str(exc) or type(exc).__name__) from exc


def _descriptor(submission: ActivitySubmission) -> ActivityDescriptor:
    meta = submission.metadata
    return ActivityDescriptor(
        activity_type=submission.activity_type,
        scale=submission.scale,
        location=submission.location,
        documentation=submission.documentation,
        before_after_photos=submission.before_after_photos,
        community_involvement=submission.community_involvement,
        measurable_outcomes=submission.measurable_outcomes,
        has_photos=bool(submission.photo_data),
        has_location=meta.gps_coordinates is not None,
        has_timestamp=meta.timestamp is not None,
        third_party_verified=meta.third_party_verified,
    )


def _check_score(verification: VerificationResult, name: str) -> float:
    result = verification.detailed_analysis.get(name)
    return 0.0 if result is None else extract_score(result)


class SummaryAccumulator:
    """Running batch statistics; holds counters, never the results."""

    def __init__(self):
        self.total = 0
        self.successful = 0
        self.total_rewards = 0.0
        self._sustainability_sum = 0.0
        self._sustainability_count = 0
        self._activities: Counter[str] = Counter()
        self._issues: Counter[str] = Counter()

    def add(self, result: ProcessResult) -> None:
        self.total += 1
        if not result.success:
            self._issues[result.error_code or "UNKNOWN"] += 1
            return
        self.successful += 1
        self.total_rewards += result.reward_amount
        if result.sustainability:
            self._sustainability_sum += result.sustainability.score
            self._sustainability_count += 1
        if result.activity_type:
            self._activities[result.activity_type] += 1

    def summary(self) -> BatchSummary:
        return BatchSummary(
            total=self.total,
            successful=self.successful,
            failed=self.total - self.successful,
            success_rate=(self.successful / self.total * 100) if self.total else 0.0,
            total_rewards=self.total_rewards,
            average_sustainability_score=(
                self._sustainability_sum / self._sustainability_count
                if self._sustainability_count else 0.0
            ),
            top_activities=self._activities.most_common(3),
            common_issues=self._issues.most_common(),
        )


def summarize(results: Iterable[ProcessResult]) -> BatchSummary:
    acc = SummaryAccumulator()
    for result in results:
        acc.add(result)
    return acc.summary()


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ActivityOrchestrator:

    def __init__(
        self,
        detector: Optional[PhotoDetector] = None,
        photo_store: Optional[PhotoStore] = None,
        issuer: Optional[RewardIssuer] = None,
        profile_store: Optional[UserProfileStore] = None,
        *,
        subcheck_policy: Optional[SubcheckFailurePolicy] = None,
        reward_calculator: Optional[RewardCalculator] = None,
        behavior_analyzer: Optional[BehaviorAnalyzer] = None,
        timeout_seconds: Optional[float] = None,
        issuance_timeout_seconds: Optional[float] = None,
        fallback_amount: Optional[float] = None,
        batch_concurrency: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.photo_scorer = PhotoVerificationScorer(
            detector or HeuristicPhotoDetector(),
            subcheck_policy or SubcheckFailurePolicy(settings.SUBCHECK_FAILURE_POLICY),
        )
        self.photo_store = photo_store or InlinePhotoStore()
        self.issuer = issuer or SimulatedRewardIssuer(
            settings.TOKEN_CONTRACT, network=settings.REWARD_NETWORK
        )
        self.profile_store = profile_store
        self.reward_calculator = reward_calculator or RewardCalculator(
            base_reward=settings.BASE_TOKEN_REWARD,
            max_daily_reward=settings.MAX_DAILY_REWARD,
            seasonal_mode=SeasonalMode(settings.SEASONAL_MODE),
        )
        self.behavior_analyzer = behavior_analyzer or BehaviorAnalyzer()
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.SUBMISSION_TIMEOUT_SECONDS
        )
        self.issuance_timeout_seconds = (
            issuance_timeout_seconds if issuance_timeout_seconds is not None
            else settings.ISSUANCE_TIMEOUT_SECONDS
        )
        self.fallback_amount = (
            fallback_amount if fallback_amount is not None else settings.FALLBACK_TOKEN_AMOUNT
        )
        self.batch_concurrency = batch_concurrency or settings.BATCH_CONCURRENCY
        self.clock = clock
        self.metrics = MetricsRecorder()

    # -- running state ------------------------------------------------------

    def metrics_snapshot(self) -> tuple[OrchestratorMetrics, int, BehaviorMetrics]:
        analyses, behavior = self.behavior_analyzer.tracker.snapshot()
        return self.metrics.snapshot(), analyses, behavior

    def reset_metrics(self) -> None:
        self.metrics.reset()
        self.behavior_analyzer.tracker.reset()

    # -- single submission --------------------------------------------------

    async def process_activity(self, submission: ActivitySubmission) -> ProcessResult:
        process_id = _new_id("eco")
        started = time.perf_counter()
        logger.info("Processing eco-activity %s (%s)", process_id, submission.activity_type)

        try:
            result = await asyncio.wait_for(
                self._decide(process_id, submission),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Processing timed out: %s", process_id)
            result = self._fallback(
                process_id, submission, SubmissionTimeoutError(self.timeout_seconds), "timeout"
            )
        except SubmissionValidationError as exc:
            logger.info("Rejected submission %s: %s", process_id, exc.message)
            result = self._fallback(process_id, submission, exc, "validation_failed")
        except EcoHuntException as exc:
            logger.error("Processing failed: %s (%s)", process_id, exc.message)
            result = self._fallback(process_id, submission, exc)
        except Exception as exc:
            logger.exception("Processing failed: %s", process_id)
            result = self._fallback(
                process_id, submission, PipelineFailure("pipeline", str(exc))
            )

        if result.success:
            result = replace(result, issuance=await self._deliver(result))

        elapsed_ms = (time.perf_counter() - started) * 1000
        result = replace(result, processing_time_ms=round(elapsed_ms, 3))
        self.metrics.record(elapsed_ms, result.success)
        if result.success:
            logger.info(
                "Processed %s: %.2f GREEN (%s)",
                process_id, result.reward.reward_amount, result.reward.token_tier.value,
            )
        return result

    async def _decide(self, process_id: str, submission: ActivitySubmission) -> ProcessResult:
        """Steps 0-6. The returned result carries no issuance outcome yet."""
        validate_submission(submission)
        as_of = self.clock()

        profile, history = submission.user_profile, submission.user_history
        if profile is None and self.profile_store is not None:
            with _pipeline_step("profile_load"):
                profile, history = await self.profile_store.load(submission.user_wallet)

        photo = await self.photo_store.fetch(submission.photo_data)

        # 1. photo verification (contains its own failures)
        verification = await self.photo_scorer.verify(
            photo, submission.activity_type, submission.metadata, as_of
        )

        # 2. environmental analysis
        descriptor = _descriptor(submission)
        with _pipeline_step("environmental_assessment"):
            impact = assess_environmental_impact(descriptor)
            carbon = calculate_carbon_footprint(descriptor)
            sustainability = calculate_sustainability_score(descriptor)

        # 3. second-pass validation
        with _pipeline_step("activity_validation"):
            validation = validate_activity(
                relevance_score=_check_score(verification, "environmental_relevance"),
                authenticity_score=_check_score(verification, "authenticity_check"),
                has_gps=submission.metadata.gps_coordinates is not None,
                timestamp=submission.metadata.timestamp,
                impact_potential=sustainability.score,
                as_of=as_of,
            )

        # 4. behavior
        with _pipeline_step("behavior_analysis"):
            behavior = self.behavior_analyzer.analyze(profile, history, as_of)

        # 5. reward
        with _pipeline_step("reward_calculation"):
            reward = self.reward_calculator.calculate(
                RewardActivity(
                    activity_type=submission.activity_type,
                    environmental_impact_score=sustainability.score,
                    carbon_impact=carbon.carbon_impact,
                    location=submission.location,
                ),
                verification,
                profile,
                behavior_score=behavior.behavior_score,
                as_of=as_of,
            )

        # 6. gamification
        with _pipeline_step("gamification"):
            strategy = build_strategy(behavior, profile, verification)

        return ProcessResult(
            process_id=process_id,
            success=True,
            timestamp=as_of,
            activity_type=submission.activity_type,
            user_wallet=submission.user_wallet,
            verification=verification,
            activity_validation=validation,
            impact_assessment=impact,
            carbon_footprint=carbon,
            sustainability=sustainability,
            behavior=behavior,
            reward=reward,
            gamification=strategy,
        )

    async def _deliver(self, result: ProcessResult) -> IssuanceOutcome:
        """Step 7: issue only positive rewards for valid activities."""
        if not result.activity_validation.is_valid:
            return IssuanceOutcome(status=IssuanceStatus.skipped, error="activity not valid")
        if result.reward.reward_amount <= 0:
            return IssuanceOutcome(status=IssuanceStatus.skipped, error="nothing to issue")
        return await self.issue_reward(
            process_id=result.process_id,
            recipient=result.user_wallet,
            amount=result.reward.reward_amount,
            tier=result.reward.token_tier.value,
            metadata={
                "activity_type": result.activity_type,
                "verification_score": result.verification.verification_score,
            },
        )

    async def issue_reward(
        self,
        process_id: str,
        recipient: str,
        amount: float,
        tier: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> IssuanceOutcome:
        """Delegate to the issuer; failures become an outcome, never an exception."""
        request = IssuanceRequest(
            recipient=recipient,
            amount=amount,
            tier=tier,
            metadata={"process_id": process_id, **(metadata or {})},
        )
        try:
            receipt = await asyncio.wait_for(
                self.issuer.issue(request), timeout=self.issuance_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("Issuer timed out for %s", process_id)
            return IssuanceOutcome(
                status=IssuanceStatus.failed,
                error=f"issuer did not answer within {self.issuance_timeout_seconds:g}s",
                error_kind=IssuanceError.NETWORK,
            )
        except IssuanceError as exc:
            logger.warning("Issuance failed for %s (%s): %s", process_id, exc.kind, exc.message)
            return IssuanceOutcome(
                status=IssuanceStatus.failed, error=exc.message, error_kind=exc.kind
            )
        except Exception as exc:
            logger.exception("Issuer crashed for %s", process_id)
            return IssuanceOutcome(
                status=IssuanceStatus.failed, error=str(exc), error_kind=IssuanceError.NETWORK
            )
        return IssuanceOutcome(status=IssuanceStatus.issued, receipt=receipt)

    def _fallback(
        self,
        process_id: str,
        submission: ActivitySubmission,
        exc: EcoHuntException,
        reason: str = "processing_fallback",
    ) -> ProcessResult:
        return ProcessResult(
            process_id=process_id,
            success=False,
            timestamp=self.clock(),
            activity_type=submission.activity_type,
            user_wallet=submission.user_wallet,
            error=exc.message,
            error_code=exc.code,
            fallback_reward=FallbackReward(token_amount=self.fallback_amount, reason=reason),
        )

    # -- fan-out ------------------------------------------------------------

    async def process_batch(self, submissions: Sequence[ActivitySubmission]) -> BatchResult:
        """Process independent submissions concurrently; results keep input order."""
        batch_id = _new_id("batch")
        logger.info("Processing batch %s (%d activities)", batch_id, len(submissions))
        gate = asyncio.Semaphore(self.batch_concurrency)

        async def _bounded(submission: ActivitySubmission) -> ProcessResult:
            async with gate:
                return await self.process_activity(submission)

        results = await asyncio.gather(*(_bounded(s) for s in submissions))
        return BatchResult(
            batch_id=batch_id,
            results=list(results),
            summary=summarize(results),
            processed_at=utcnow(),
        )

    def monitor_stream(self, source: AsyncIterable[ActivitySubmission]) -> "ActivitySubscription":
        return ActivitySubscription(self, source)


class ActivitySubscription:
    """
    Lazy, cancellable view over a live feed of submissions.

    Iterating yields one ProcessResult per submission in arrival order.
    cancel() stops before the next submission is processed, even when it
    is called while the feed is being awaited. Only running counters and
    the last `keep_last` results are retained.
    """

    def __init__(
        self,
        orchestrator: ActivityOrchestrator,
        source: AsyncIterable[ActivitySubmission],
        keep_last: int = 100,
    ):
        self._orchestrator = orchestrator
        self._source = source
        self._recent: deque[ProcessResult] = deque(maxlen=keep_last)
        self._summary = SummaryAccumulator()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def results(self) -> list[ProcessResult]:
        """The most recent results, oldest first."""
        return list(self._recent)

    def cancel(self) -> None:
        self._cancelled = True

    def summary(self) -> BatchSummary:
        return self._summary.summary()

    def __aiter__(self) -> AsyncIterator[ProcessResult]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProcessResult]:
        if self._cancelled:
            return
        async for submission in self._source:
            if self._cancelled:
                break
            result = await self._orchestrator.process_activity(submission)
            self._recent.append(result)
            self._summary.add(result)
            yield result
            if self._cancelled:
                break
        if self._cancelled:
            logger.info("Activity stream cancelled after %d results", self._summary.total)
