"""
Behavior analyzer: derives engagement signals from a user's activity history.

Signals
-------
  consistency_score   % of the 7 calendar days ending at `as_of` with >= 1
                      activity. 0 unless there are at least 7 entries.
  diversity_score     distinct known activity types / 8 * 100.
  quality_trend       mean quality of the last 5 vs. the 5 before:
                      > +5 improving, < -5 declining, else stable.
                      insufficient_data below 10 entries.
  engagement_pattern  mean gap (days) over the last 30 entries:
                      <=1 highly, <=3 regularly, <=7 moderately, else occasionally.

behavior_score weighs five metrics derived from *this* analysis:
consistency 0.25, quality 0.25, diversity 0.20, community 0.20, progression 0.10.

Running state
-------------
Each BehaviorAnalyzer owns a BehaviorTracker: the running mean of every
metrics snapshot it has produced. It starts at zero when the analyzer is
constructed and is cleared only by reset(). Scoring never reads it, so
concurrent analyses cannot leak into each other's rewards.
"""
from __future__ import annotations

import enum
import threading
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from statistics import mean
from typing import Optional, Sequence

from app.services.catalog import KNOWN_ACTIVITY_TYPES
from app.services.submission import HistoryEntry, UserProfile, as_utc, utcnow


class QualityTrend(str, enum.Enum):
    improving = "improving"
    declining = "declining"
    stable = "stable"
    insufficient_data = "insufficient_data"


class EngagementPattern(str, enum.Enum):
    new_user = "new_user"
    highly_engaged = "highly_engaged"
    regularly_engaged = "regularly_engaged"
    moderately_engaged = "moderately_engaged"
    occasionally_engaged = "occasionally_engaged"


METRIC_WEIGHTS: dict[str, float] = {
    "consistency": 0.25,
    "quality": 0.25,
    "diversity": 0.20,
    "community": 0.20,
    "progression": 0.10,
}

_CONSISTENCY_WINDOW_DAYS = 7
_TREND_WINDOW = 5
_TREND_MARGIN = 5.0
_ENGAGEMENT_WINDOW = 30
_QUALITY_WINDOW = 10
_BURST_COUNT = 5
_BURST_SPAN = timedelta(hours=1)

_PROGRESSION_BY_TREND = {
    QualityTrend.improving: 100.0,
    QualityTrend.stable: 60.0,
    QualityTrend.declining: 20.0,
    QualityTrend.insufficient_data: 0.0,
}


@dataclass(frozen=True)
class BehaviorMetrics:
    consistency: float = 0.0
    quality: float = 0.0
    diversity: float = 0.0
    community: float = 0.0
    progression: float = 0.0

    def weighted_score(self) -> float:
        values = asdict(self)
        return round(sum(values[k] * w for k, w in METRIC_WEIGHTS.items()), 2)


@dataclass(frozen=True)
class BehaviorProfile:
    consistency_score: float
    diversity_score: float
    quality_trend: QualityTrend
    engagement_pattern: EngagementPattern
    behavior_score: float
    social_engagement: float = 0.0
    learning_progression: float = 0.0
    metrics: BehaviorMetrics = field(default_factory=BehaviorMetrics)
    recommendations: list[str] = field(default_factory=list)
    risk_flags: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Running aggregate
# ---------------------------------------------------------------------------

class BehaviorTracker:
    """Lock-guarded running mean of BehaviorMetrics snapshots."""

    def __init__(self):
        self._lock = threading.Lock()
        self._count = 0
        self._current = BehaviorMetrics()

    def record(self, metrics: BehaviorMetrics) -> BehaviorMetrics:
        with self._lock:
            self._count += 1
            prev = asdict(self._current)
            new = asdict(metrics)
            self._current = BehaviorMetrics(**{
                k: prev[k] + (new[k] - prev[k]) / self._count for k in prev
            })
            return self._current

    def snapshot(self) -> tuple[int, BehaviorMetrics]:
        with self._lock:
            return self._count, self._current

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._current = BehaviorMetrics()


# ---------------------------------------------------------------------------
# Individual signals
# ---------------------------------------------------------------------------

def calculate_consistency_score(history: Sequence[HistoryEntry], as_of: datetime) -> float:
    if len(history) < _CONSISTENCY_WINDOW_DAYS:
        return 0.0
    end: date = as_utc(as_of).date()
    window = {end - timedelta(days=i) for i in range(_CONSISTENCY_WINDOW_DAYS)}
    active = {as_utc(e.timestamp).date() for e in history} & window
    return round(len(active) / _CONSISTENCY_WINDOW_DAYS * 100, 2)


def calculate_diversity_score(history: Sequence[HistoryEntry]) -> float:
    seen = {e.activity_type for e in history} & KNOWN_ACTIVITY_TYPES
    return round(len(seen) / len(KNOWN_ACTIVITY_TYPES) * 100, 2)


def analyze_quality_trend(history: Sequence[HistoryEntry]) -> QualityTrend:
    if len(history) < 2 * _TREND_WINDOW:
        return QualityTrend.insufficient_data
    recent = mean(e.quality_score for e in history[-_TREND_WINDOW:])
    prior = mean(e.quality_score for e in history[-2 * _TREND_WINDOW:-_TREND_WINDOW])
    if recent > prior + _TREND_MARGIN:
        return QualityTrend.improving
    if recent < prior - _TREND_MARGIN:
        return QualityTrend.declining
    return QualityTrend.stable


def _sorted_recent(history: Sequence[HistoryEntry], n: int) -> list[datetime]:
    return sorted(as_utc(e.timestamp) for e in history[-n:])


def average_interval_days(history: Sequence[HistoryEntry], as_of: datetime) -> Optional[float]:
    """Mean gap between consecutive activities; a lone entry measures to `as_of`."""
    stamps = _sorted_recent(history, _ENGAGEMENT_WINDOW)
    if not stamps:
        return None
    if len(stamps) == 1:
        return max((as_utc(as_of) - stamps[0]).total_seconds(), 0.0) / 86400
    gaps = [(b - a).total_seconds() / 86400 for a, b in zip(stamps, stamps[1:])]
    return mean(gaps)


def analyze_engagement_pattern(
    history: Sequence[HistoryEntry], as_of: datetime
) -> EngagementPattern:
    interval = average_interval_days(history, as_of)
    if interval is None:
        return EngagementPattern.new_user
    if interval <= 1:
        return EngagementPattern.highly_engaged
    if interval <= 3:
        return EngagementPattern.regularly_engaged
    if interval <= 7:
        return EngagementPattern.moderately_engaged
    return EngagementPattern.occasionally_engaged


def social_engagement_score(profile: Optional[UserProfile]) -> float:
    community = profile.community if profile else None
    if community is None:
        return 0.0
    raw = community.referrals * 10 + community.social_shares * 5 + community.mentorship_points * 15
    return float(min(100, raw))


def _recent_quality(history: Sequence[HistoryEntry]) -> float:
    window = history[-_QUALITY_WINDOW:]
    if not window:
        return 0.0
    return round(min(100.0, max(0.0, mean(e.quality_score for e in window))), 2)


def _has_burst(history: Sequence[HistoryEntry]) -> bool:
    stamps = _sorted_recent(history, _ENGAGEMENT_WINDOW)
    for i in range(len(stamps) - _BURST_COUNT + 1):
        if stamps[i + _BURST_COUNT - 1] - stamps[i] <= _BURST_SPAN:
            return True
    return False


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class BehaviorAnalyzer:

    def __init__(self):
        self.tracker = BehaviorTracker()

    def analyze(
        self,
        profile: Optional[UserProfile],
        history: Sequence[HistoryEntry],
        as_of: Optional[datetime] = None,
    ) -> BehaviorProfile:
        now = as_of or utcnow()
        history = list(history or ())

        consistency = calculate_consistency_score(history, now)
        diversity = calculate_diversity_score(history)
        trend = analyze_quality_trend(history)
        social = social_engagement_score(profile)
        progression = _PROGRESSION_BY_TREND[trend]

        metrics = BehaviorMetrics(
            consistency=consistency,
            quality=_recent_quality(history),
            diversity=diversity,
            community=social,
            progression=progression,
        )
        self.tracker.record(metrics)

        risk_flags = []
        if _has_burst(history):
            risk_flags.append("burst_activity")
        if trend is QualityTrend.declining:
            risk_flags.append("declining_quality")
        if len(history) >= 2 * _TREND_WINDOW and diversity < 25:
            risk_flags.append("low_diversity")

        recommendations = []
        if consistency < 70:
            recommendations.append("Set daily reminders to maintain your eco-activity streak")
        if diversity < 50:
            recommendations.append("Try new types of environmental activities to earn diversity bonuses")
        if social < 30:
            recommendations.append("Share your activities to inspire others and earn community bonuses")

        return BehaviorProfile(
            consistency_score=consistency,
            diversity_score=diversity,
            quality_trend=trend,
            engagement_pattern=analyze_engagement_pattern(history, now),
            behavior_score=metrics.weighted_score(),
            social_engagement=social,
            learning_progression=progression,
            metrics=metrics,
            recommendations=recommendations,
            risk_flags=risk_flags,
        )
