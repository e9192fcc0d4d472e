"""
Environmental impact service: carbon estimate, sustainability score,
five-dimension impact assessment and the second-pass activity validation.

Public API
----------
assess_activity_quality(evidence)                     -> float
calculate_carbon_footprint(activity)                  -> CarbonFootprint
calculate_sustainability_score(activity)              -> SustainabilityScore
assess_environmental_impact(activity)                 -> ImpactAssessment
validate_activity(relevance_score, authenticity_score, ...) -> ActivityValidation

Everything here is pure: identical input gives identical output.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from app.services.catalog import (
    CARBON_FACTORS,
    DEFAULT_IMPACT_DIMENSIONS,
    DEFAULT_SUSTAINABILITY_BASE,
    IMPACT_DIMENSIONS,
    LOCATION_IMPACT,
    SUSTAINABILITY_BASE_SCORES,
)
from app.services.submission import as_utc


def round_half_up(value: float, places: int = 0) -> float:
    quant = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Input / result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActivityDescriptor:
    """What the impact calculators need to know about one activity."""
    activity_type: Optional[str]
    scale: Optional[float] = 1.0
    location: Optional[str] = None
    documentation: Sequence[str] = ()
    before_after_photos: bool = False
    community_involvement: bool = False
    measurable_outcomes: bool = False
    # Verification evidence, used for confidence only
    has_photos: bool = False
    has_location: bool = False
    has_timestamp: bool = False
    third_party_verified: bool = False


@dataclass(frozen=True)
class CarbonFootprint:
    carbon_impact: float          # kg CO2, negative = absorbed / saved
    impact_category: str
    confidence: float             # 0.0 – 1.0
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SustainabilityBreakdown:
    base_score: int
    quality_multiplier: float
    location_multiplier: float
    scale_multiplier: float


@dataclass(frozen=True)
class SustainabilityScore:
    score: int                    # 0 – 100
    breakdown: SustainabilityBreakdown
    recommendation: str


@dataclass(frozen=True)
class ImpactAssessment:
    overall_score: float
    detailed_scores: dict[str, float]
    impact_level: str
    sustainability_rating: str
    action_plan: list[str]


@dataclass(frozen=True)
class ActivityValidation:
    is_valid: bool
    confidence: float             # 0 – 100, mean of the five checks
    breakdown: dict[str, float]
    fraud_risk: str
    recommendations: list[str]


# ---------------------------------------------------------------------------
# Quality multiplier
# ---------------------------------------------------------------------------

_QUALITY_CAP = 1.5
_DOCUMENTATION_BONUS = 0.1
_BEFORE_AFTER_BONUS = 0.2
_COMMUNITY_BONUS = 0.15
_MEASURABLE_BONUS = 0.2


def assess_activity_quality(activity: ActivityDescriptor) -> float:
    """1.0 plus documentation bonuses, capped at 1.5."""
    quality = 1.0
    if activity.documentation:
        quality += _DOCUMENTATION_BONUS
    if activity.before_after_photos:
        quality += _BEFORE_AFTER_BONUS
    if activity.community_involvement:
        quality += _COMMUNITY_BONUS
    if activity.measurable_outcomes:
        quality += _MEASURABLE_BONUS
    return min(round(quality, 4), _QUALITY_CAP)


# ---------------------------------------------------------------------------
# Carbon
# ---------------------------------------------------------------------------

def categorize_carbon_impact(impact: float) -> str:
    if impact > 0:
        return "negative_impact"
    if impact > -5:
        return "low_positive_impact"
    if impact > -15:
        return "medium_positive_impact"
    return "high_positive_impact"


def _carbon_confidence(activity: ActivityDescriptor) -> float:
    confidence = 0.7
    if activity.has_photos:
        confidence += 0.1
    if activity.has_location:
        confidence += 0.1
    if activity.has_timestamp:
        confidence += 0.05
    if activity.third_party_verified:
        confidence += 0.15
    return min(round(confidence, 4), 1.0)


def _carbon_recommendations(activity: ActivityDescriptor) -> list[str]:
    if activity.activity_type == "tree-planting":
        return [
            "Consider native species for better local ecosystem impact",
            "Document growth progress for long-term impact tracking",
        ]
    if not activity.measurable_outcomes:
        return ["Record measurable outcomes (kg, kWh, km) to sharpen the estimate"]
    return []


def calculate_carbon_footprint(activity: ActivityDescriptor) -> CarbonFootprint:
    """factor(type) × scale × quality. Unknown types have factor 0."""
    factor = CARBON_FACTORS.get(activity.activity_type or "", 0.0)
    scale = activity.scale if activity.scale is not None else 1.0
    impact = factor * max(scale, 0.0) * assess_activity_quality(activity)
    return CarbonFootprint(
        carbon_impact=impact,
        impact_category=categorize_carbon_impact(impact),
        confidence=_carbon_confidence(activity),
        recommendations=_carbon_recommendations(activity),
    )


# ---------------------------------------------------------------------------
# Sustainability
# ---------------------------------------------------------------------------

def _score_recommendation(score: float) -> str:
    if score >= 90:
        return "Outstanding activity. Keep documenting to sustain this level."
    if score >= 70:
        return "Strong activity. Add before/after photos to push it higher."
    if score >= 50:
        return "Good start. Scale up or add community involvement."
    return "Choose a higher-impact activity type or improve documentation."


def calculate_sustainability_score(activity: ActivityDescriptor) -> SustainabilityScore:
    base = SUSTAINABILITY_BASE_SCORES.get(activity.activity_type or "", DEFAULT_SUSTAINABILITY_BASE)
    quality = assess_activity_quality(activity)
    location = LOCATION_IMPACT.get(activity.location or "", 1.0)
    scale = min(activity.scale if activity.scale is not None else 1.0, 2.0)

    raw = min(100.0, base * quality * location * scale)
    score = int(round_half_up(max(raw, 0.0)))

    return SustainabilityScore(
        score=max(0, min(100, score)),
        breakdown=SustainabilityBreakdown(
            base_score=base,
            quality_multiplier=quality,
            location_multiplier=location,
            scale_multiplier=scale,
        ),
        recommendation=_score_recommendation(raw),
    )


# ---------------------------------------------------------------------------
# Five-dimension impact assessment
# ---------------------------------------------------------------------------

IMPACT_WEIGHTS: dict[str, float] = {
    "air_quality": 0.25,
    "water_quality": 0.25,
    "soil_health": 0.20,
    "biodiversity": 0.20,
    "waste_reduction": 0.10,
}


def categorize_impact_level(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "moderate"
    return "needs_improvement"


def sustainability_rating(score: float) -> str:
    if score >= 90:
        return "A+"
    if score >= 80:
        return "A"
    if score >= 70:
        return "B+"
    if score >= 60:
        return "B"
    if score >= 50:
        return "C+"
    return "C"


def assess_environmental_impact(activity: ActivityDescriptor) -> ImpactAssessment:
    dims = IMPACT_DIMENSIONS.get(activity.activity_type or "", DEFAULT_IMPACT_DIMENSIONS)
    quality = assess_activity_quality(activity)
    scores = {
        name: min(100.0, value * quality)
        for name, value in zip(IMPACT_WEIGHTS, dims)
    }
    overall = round(sum(scores[k] * w for k, w in IMPACT_WEIGHTS.items()), 2)
    return ImpactAssessment(
        overall_score=overall,
        detailed_scores=scores,
        impact_level=categorize_impact_level(overall),
        sustainability_rating=sustainability_rating(overall),
        action_plan=[
            f"Improve {name} through targeted actions"
            for name, value in scores.items()
            if value < 70
        ],
    )


# ---------------------------------------------------------------------------
# Second-pass activity validation
# ---------------------------------------------------------------------------

VALIDATION_THRESHOLD = 70.0


def _time_consistency(timestamp: Optional[datetime], as_of: datetime) -> float:
    if timestamp is None:
        return 60.0
    age = as_utc(as_of) - as_utc(timestamp)
    if age < timedelta(minutes=-5):
        return 20.0   # from the future
    if age <= timedelta(days=1):
        return 100.0
    if age <= timedelta(days=7):
        return 80.0
    return 40.0


def validate_activity(
    *,
    relevance_score: float,
    authenticity_score: float,
    has_gps: bool,
    timestamp: Optional[datetime],
    impact_potential: float,
    as_of: datetime,
) -> ActivityValidation:
    """
    Combine five 0-100 checks by a plain mean; valid iff mean > 70.
    relevance/authenticity arrive as 0-1 fractions from photo verification.
    """
    breakdown = {
        "environmental_relevance": round(relevance_score * 100, 2),
        "activity_authenticity": round(authenticity_score * 100, 2),
        "location_consistency": 100.0 if has_gps else 60.0,
        "time_consistency": _time_consistency(timestamp, as_of),
        "impact_potential": float(impact_potential),
    }
    mean = round(sum(breakdown.values()) / len(breakdown), 2)

    if mean >= 85:
        fraud_risk = "low"
    elif mean > VALIDATION_THRESHOLD:
        fraud_risk = "medium"
    else:
        fraud_risk = "high"

    recommendations = []
    if not has_gps:
        recommendations.append("Enable location services so the activity site can be confirmed")
    if timestamp is None:
        recommendations.append("Submit photos with their original capture time")
    if breakdown["environmental_relevance"] < 70:
        recommendations.append("Frame the environmental activity clearly in the photo")

    return ActivityValidation(
        is_valid=mean > VALIDATION_THRESHOLD,
        confidence=mean,
        breakdown=breakdown,
        fraud_risk=fraud_risk,
        recommendations=recommendations,
    )
