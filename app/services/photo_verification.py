"""
Photo verification scorer.

Runs the five detector sub-checks concurrently and folds them into one
verdict:

    check                    weight   score contribution
    activity_detection        0.35    confidence if detected else 0
    authenticity_check        0.25    authenticity_score if is_authentic else 0
    environmental_relevance   0.20    relevance_score if is_relevant else 0
    fraud_assessment          0.15    1 - fraud_risk
    quality_assessment        0.05    overall_score

overall    = round(100 * sum(weight * score))
confidence = round(100 * sum(weight * confidence))
verified   = overall >= 70

A failing sub-check never escapes this module. SubcheckFailurePolicy
decides whether it zeroes that check (degrade) or voids the verdict (abort).
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from app.core.errors import SubcheckFailure
from app.services.detectors import (
    ActivityDetection,
    AuthenticityCheck,
    FraudAssessment,
    PhotoDetector,
    PhotoInput,
    QualityAssessment,
    RelevanceCheck,
)
from app.services.impact import round_half_up
from app.services.submission import SubmissionMetadata, utcnow

logger = logging.getLogger(__name__)


class EligibilityTier(str, enum.Enum):
    not_eligible = "not_eligible"
    basic_tier = "basic_tier"
    standard_tier = "standard_tier"
    premium_tier = "premium_tier"


class SubcheckFailurePolicy(str, enum.Enum):
    degrade = "degrade"
    abort = "abort"


VERIFICATION_WEIGHTS: dict[str, float] = {
    "activity_detection": 0.35,
    "authenticity_check": 0.25,
    "environmental_relevance": 0.20,
    "fraud_assessment": 0.15,
    "quality_assessment": 0.05,
}

VERIFIED_THRESHOLD = 70
_NEUTRAL = 0.5


@dataclass(frozen=True)
class VerificationResult:
    is_verified: bool
    verification_score: int
    confidence: int
    token_eligibility: EligibilityTier
    detailed_analysis: dict[str, Any] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)
    failed_checks: list[str] = field(default_factory=list)
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Extraction rules
# ---------------------------------------------------------------------------

def extract_score(result: Any) -> float:
    if isinstance(result, ActivityDetection):
        return result.confidence if result.detected else 0.0
    if isinstance(result, AuthenticityCheck):
        return result.authenticity_score if result.is_authentic else 0.0
    if isinstance(result, RelevanceCheck):
        return result.relevance_score if result.is_relevant else 0.0
    if isinstance(result, FraudAssessment):
        return 1.0 - result.fraud_risk
    if isinstance(result, QualityAssessment):
        return result.overall_score
    return _NEUTRAL


def extract_confidence(result: Any) -> float:
    """Self-reported confidence; zero or missing falls back to neutral."""
    if isinstance(result, ActivityDetection):
        return result.confidence or _NEUTRAL
    if isinstance(result, AuthenticityCheck):
        return result.authenticity_score or _NEUTRAL
    if isinstance(result, RelevanceCheck):
        return result.relevance_score or _NEUTRAL
    return _NEUTRAL


def eligibility_for(score: int) -> EligibilityTier:
    if score >= 90:
        return EligibilityTier.premium_tier
    if score >= 80:
        return EligibilityTier.standard_tier
    if score >= 70:
        return EligibilityTier.basic_tier
    return EligibilityTier.not_eligible


def combine(
    results: dict[str, Any],
    failed: frozenset[str] = frozenset(),
) -> tuple[int, int]:
    """Weighted (overall, confidence). Checks in `failed` contribute zero."""
    total_score = 0.0
    total_confidence = 0.0
    for name, weight in VERIFICATION_WEIGHTS.items():
        if name in failed:
            continue
        result = results.get(name)
        total_score += extract_score(result) * weight
        total_confidence += extract_confidence(result) * weight
    return (
        int(round_half_up(total_score * 100)),
        int(round_half_up(total_confidence * 100)),
    )


def _collect_recommendations(results: dict[str, Any]) -> list[str]:
    seen: list[str] = []
    for result in results.values():
        for rec in getattr(result, "recommendations", None) or []:
            if rec not in seen:
                seen.append(rec)
    return seen


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class PhotoVerificationScorer:
    """Owns a detector and a failure policy; stateless between calls."""

    def __init__(
        self,
        detector: PhotoDetector,
        policy: SubcheckFailurePolicy = SubcheckFailurePolicy.degrade,
    ):
        self.detector = detector
        self.policy = SubcheckFailurePolicy(policy)

    async def _run_checks(self, photo: PhotoInput) -> list[Any]:
        return await asyncio.gather(
            self.detector.detect_activity(photo),
            self.detector.verify_authenticity(photo),
            self.detector.assess_relevance(photo),
            self.detector.detect_fraud(photo),
            self.detector.assess_quality(photo),
            return_exceptions=True,
        )

    async def verify(
        self,
        photo: bytes,
        activity_type: str,
        metadata: Optional[SubmissionMetadata] = None,
        as_of: Optional[datetime] = None,
    ) -> VerificationResult:
        photo_input = PhotoInput(
            data=photo,
            activity_type=activity_type,
            metadata=metadata or SubmissionMetadata(),
            as_of=as_of or utcnow(),
        )
        try:
            outcomes = await self._run_checks(photo_input)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Photo verification crashed before sub-checks completed")
            return self._failed(str(exc), failed_checks=list(VERIFICATION_WEIGHTS))

        results: dict[str, Any] = {}
        failures: list[SubcheckFailure] = []
        for name, outcome in zip(VERIFICATION_WEIGHTS, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                failures.append(SubcheckFailure(name, str(outcome) or type(outcome).__name__))
                results[name] = None
            else:
                results[name] = outcome

        if failures:
            for failure in failures:
                logger.warning(failure.message)
            if self.policy is SubcheckFailurePolicy.abort:
                return self._failed(
                    "; ".join(f.message for f in failures),
                    failed_checks=[f.details["check"] for f in failures],
                    detailed_analysis=results,
                )

        failed = frozenset(f.details["check"] for f in failures)
        overall, confidence = combine(results, failed)
        return VerificationResult(
            is_verified=overall >= VERIFIED_THRESHOLD,
            verification_score=overall,
            confidence=confidence,
            token_eligibility=eligibility_for(overall),
            detailed_analysis=results,
            recommendations=_collect_recommendations(results),
            failed_checks=sorted(failed),
            error="; ".join(f.message for f in failures) or None,
        )

    @staticmethod
    def _failed(
        error: str,
        failed_checks: list[str],
        detailed_analysis: Optional[dict[str, Any]] = None,
    ) -> VerificationResult:
        return VerificationResult(
            is_verified=False,
            verification_score=0,
            confidence=0,
            token_eligibility=EligibilityTier.not_eligible,
            detailed_analysis=detailed_analysis or {},
            failed_checks=failed_checks,
            error=error,
        )
