"""
Photo detectors: the pluggable seam between the verification scorer and
whatever actually looks at pixels.

A PhotoDetector answers five independent questions about one photo. The
scorer only cares about the result *shapes* below; a real computer-vision
backend implements the protocol and is injected at construction.

HeuristicPhotoDetector is the shipped default. It is fully deterministic:
it inspects metadata completeness, timestamp freshness, photo size and a
digest against known duplicates. It never guesses.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Protocol

from app.services.catalog import ACTIVITY_PATTERNS
from app.services.submission import SubmissionMetadata, as_utc


# ---------------------------------------------------------------------------
# Sub-check result shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivityDetection:
    detected: bool
    confidence: float
    activity_type: Optional[str] = None
    detected_elements: list[str] = field(default_factory=list)
    reason: Optional[str] = None
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuthenticityCheck:
    is_authentic: bool
    authenticity_score: float
    checks: dict[str, float] = field(default_factory=dict)
    risk_factors: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RelevanceCheck:
    is_relevant: bool
    relevance_score: float
    indicators: dict[str, float] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FraudAssessment:
    fraud_risk: float
    is_high_risk: bool
    checks: dict[str, float] = field(default_factory=dict)
    risk_factors: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class QualityAssessment:
    overall_score: float
    technical_quality: dict[str, float] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PhotoInput:
    data: bytes
    activity_type: str
    metadata: SubmissionMetadata
    as_of: datetime

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.data).hexdigest()


class PhotoDetector(Protocol):
    async def detect_activity(self, photo: PhotoInput) -> ActivityDetection: ...

    async def verify_authenticity(self, photo: PhotoInput) -> AuthenticityCheck: ...

    async def assess_relevance(self, photo: PhotoInput) -> RelevanceCheck: ...

    async def detect_fraud(self, photo: PhotoInput) -> FraudAssessment: ...

    async def assess_quality(self, photo: PhotoInput) -> QualityAssessment: ...


# ---------------------------------------------------------------------------
# Deterministic default
# ---------------------------------------------------------------------------

MIN_PHOTO_BYTES = 1024
_FRESH_WINDOW = timedelta(days=7)
_FUTURE_TOLERANCE = timedelta(minutes=5)

# Weights for combining the detection evidence channels
_DETECTION_WEIGHTS = {
    "object_detection": 0.4,
    "scene_classification": 0.3,
    "activity_recognition": 0.25,
    "temporal_consistency": 0.05,
}


class HeuristicPhotoDetector:
    """Metadata- and size-driven stand-in for real inference."""

    def __init__(self, known_duplicates: frozenset[str] = frozenset()):
        self.known_duplicates = known_duplicates

    # -- helpers ------------------------------------------------------------

    def _is_substantial(self, photo: PhotoInput) -> bool:
        return len(photo.data) >= MIN_PHOTO_BYTES

    def _timestamp_age(self, photo: PhotoInput) -> Optional[timedelta]:
        ts = photo.metadata.timestamp
        if ts is None:
            return None
        return as_utc(photo.as_of) - as_utc(ts)

    # -- sub-checks ---------------------------------------------------------

    async def detect_activity(self, photo: PhotoInput) -> ActivityDetection:
        pattern = ACTIVITY_PATTERNS.get(photo.activity_type)
        if pattern is None:
            return ActivityDetection(
                detected=False, confidence=0.0, reason="Unknown activity type",
            )

        channel = 0.8 if self._is_substantial(photo) else 0.5
        evidence = {
            "object_detection": channel,
            "scene_classification": channel,
            "activity_recognition": channel,
            "temporal_consistency": 1.0 if photo.metadata.timestamp else 0.5,
        }
        confidence = min(
            sum(evidence[k] * w for k, w in _DETECTION_WEIGHTS.items()), 1.0
        )
        detected = confidence >= 0.7
        return ActivityDetection(
            detected=detected,
            confidence=round(confidence, 4),
            activity_type=photo.activity_type,
            detected_elements=list(pattern["visual_cues"]) if detected else [],
            recommendations=(
                [] if detected
                else [f"Show {pattern['visual_cues'][0].replace('_', ' ')} clearly in frame"]
            ),
        )

    async def verify_authenticity(self, photo: PhotoInput) -> AuthenticityCheck:
        meta = photo.metadata
        age = self._timestamp_age(photo)

        if meta.timestamp and meta.device_info:
            integrity = 1.0
        elif meta.timestamp or meta.device_info:
            integrity = 0.85
        else:
            integrity = 0.7

        if age is None:
            temporal = 0.7
        elif age < -_FUTURE_TOLERANCE:
            temporal = 0.0
        elif age <= _FRESH_WINDOW:
            temporal = 1.0
        else:
            temporal = 0.8

        checks = {
            "metadata_integrity": integrity,
            "manipulation_free": 1.0,
            "duplicate_free": 0.0 if photo.digest in self.known_duplicates else 1.0,
            "temporal_consistency": temporal,
            "location_consistency": 1.0 if meta.gps_coordinates else 0.8,
            "device_consistency": 1.0 if meta.device_info else 0.8,
        }
        score = round(sum(checks.values()) / len(checks), 4)
        risk_factors = [name for name, value in checks.items() if value < 0.8]
        return AuthenticityCheck(
            is_authentic=score >= 0.8,
            authenticity_score=score,
            checks=checks,
            risk_factors=risk_factors,
            recommendations=(
                ["Submit the original photo with EXIF metadata intact"] if risk_factors else []
            ),
        )

    async def assess_relevance(self, photo: PhotoInput) -> RelevanceCheck:
        score = 0.85 if self._is_substantial(photo) else 0.5
        return RelevanceCheck(
            is_relevant=score >= 0.7,
            relevance_score=score,
            indicators={"natural_elements": score, "context_relevance": score},
            recommendations=(
                [] if score >= 0.7 else ["Include the surrounding environment in the shot"]
            ),
        )

    async def detect_fraud(self, photo: PhotoInput) -> FraudAssessment:
        age = self._timestamp_age(photo)
        checks = {
            "duplicate_submission": 1.0 if photo.digest in self.known_duplicates else 0.0,
            "missing_timestamp": 0.3 if age is None else 0.0,
            "future_timestamp": 0.6 if age is not None and age < -_FUTURE_TOLERANCE else 0.0,
            "undersized_image": 0.4 if not self._is_substantial(photo) else 0.0,
        }
        risk = min(max(checks.values()), 1.0)
        return FraudAssessment(
            fraud_risk=risk,
            is_high_risk=risk >= 0.7,
            checks=checks,
            risk_factors=[name for name, value in checks.items() if value > 0],
        )

    async def assess_quality(self, photo: PhotoInput) -> QualityAssessment:
        substantial = self._is_substantial(photo)
        return QualityAssessment(
            overall_score=0.85 if substantial else 0.4,
            technical_quality={"resolution": 1.0 if substantial else 0.3},
            recommendations=[] if substantial else ["Upload a higher resolution photo"],
        )
