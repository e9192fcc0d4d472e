"""
Tests for the behavior analyzer.

Covers:
- Consistency over the trailing 7-day window (needs >= 7 entries)
- Diversity over known activity types
- Quality trend thresholds and insufficient data
- Engagement pattern, including the single-entry case
- Behavior score weighting and the running tracker lifecycle
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from app.services.behavior import (
    METRIC_WEIGHTS,
    BehaviorAnalyzer,
    BehaviorMetrics,
    EngagementPattern,
    QualityTrend,
    analyze_engagement_pattern,
    analyze_quality_trend,
    calculate_consistency_score,
    calculate_diversity_score,
    social_engagement_score,
)
from app.services.submission import CommunityMetrics, HistoryEntry, UserProfile

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _daily(n, activity_type="tree-planting", quality=50.0, every=timedelta(days=1)):
    """n entries, oldest first, the newest one hour before NOW."""
    return [
        HistoryEntry(activity_type, NOW - timedelta(hours=1) - every * (n - 1 - i), quality)
        for i in range(n)
    ]


class TestConsistency:
    def test_seven_consecutive_days(self):
        assert calculate_consistency_score(_daily(7), NOW) == 100.0

    def test_fewer_than_seven_entries_scores_zero(self):
        assert calculate_consistency_score(_daily(6), NOW) == 0.0

    def test_counts_distinct_days_only(self):
        history = _daily(3) + _daily(4, every=timedelta(minutes=5))
        # days: NOW-2d, NOW-1d, NOW (x5)
        assert calculate_consistency_score(history, NOW) == pytest.approx(42.86)

    def test_old_activity_outside_window_ignored(self):
        history = _daily(7, every=timedelta(days=3))
        # 0, -3, -6 fall inside the 7-day window
        assert calculate_consistency_score(history, NOW) == pytest.approx(42.86)


class TestDiversity:
    def test_half_of_known_types(self):
        history = [
            HistoryEntry(t, NOW)
            for t in ("tree-planting", "recycling", "composting", "waste-cleanup", "recycling")
        ]
        assert calculate_diversity_score(history) == 50.0

    def test_unknown_types_ignored(self):
        history = [HistoryEntry("skydiving", NOW), HistoryEntry("recycling", NOW)]
        assert calculate_diversity_score(history) == 12.5

    def test_empty_history(self):
        assert calculate_diversity_score([]) == 0.0


class TestQualityTrend:
    def test_insufficient_below_ten(self):
        assert analyze_quality_trend(_daily(9)) is QualityTrend.insufficient_data

    def test_improving(self):
        history = _daily(5, quality=50) + _daily(5, quality=60)
        assert analyze_quality_trend(history) is QualityTrend.improving

    def test_declining(self):
        history = _daily(5, quality=80) + _daily(5, quality=60)
        assert analyze_quality_trend(history) is QualityTrend.declining

    def test_within_margin_is_stable(self):
        history = _daily(5, quality=60) + _daily(5, quality=65)
        assert analyze_quality_trend(history) is QualityTrend.stable


class TestEngagement:
    def test_no_history_is_new_user(self):
        assert analyze_engagement_pattern([], NOW) is EngagementPattern.new_user

    def test_daily_is_highly_engaged(self):
        assert analyze_engagement_pattern(_daily(10), NOW) is EngagementPattern.highly_engaged

    def test_every_five_days_is_moderate(self):
        history = _daily(4, every=timedelta(days=5))
        assert analyze_engagement_pattern(history, NOW) is EngagementPattern.moderately_engaged

    def test_single_entry_measures_to_now(self):
        history = [HistoryEntry("recycling", NOW - timedelta(days=2))]
        assert analyze_engagement_pattern(history, NOW) is EngagementPattern.regularly_engaged

    def test_single_old_entry_is_occasional(self):
        history = [HistoryEntry("recycling", NOW - timedelta(days=30))]
        assert analyze_engagement_pattern(history, NOW) is EngagementPattern.occasionally_engaged


class TestSocialEngagement:
    def test_weighted_and_capped(self):
        profile = UserProfile(community=CommunityMetrics(referrals=2, social_shares=4, mentorship_points=1))
        assert social_engagement_score(profile) == 55.0
        big = UserProfile(community=CommunityMetrics(referrals=20))
        assert social_engagement_score(big) == 100.0

    def test_missing_profile(self):
        assert social_engagement_score(None) == 0.0


class TestBehaviorScore:
    def test_weights_sum_to_one(self):
        assert sum(METRIC_WEIGHTS.values()) == pytest.approx(1.0)

    def test_weighted_score(self):
        assert BehaviorMetrics(100, 100, 100, 100, 100).weighted_score() == 100.0
        assert BehaviorMetrics(consistency=100).weighted_score() == 25.0

    def test_new_user_scores_zero(self):
        profile = BehaviorAnalyzer().analyze(UserProfile(), [], NOW)
        assert profile.behavior_score == 0.0
        assert profile.engagement_pattern is EngagementPattern.new_user
        assert profile.quality_trend is QualityTrend.insufficient_data

    def test_score_within_bounds(self):
        history = _daily(5, quality=50) + _daily(5, quality=90)
        profile = BehaviorAnalyzer().analyze(
            UserProfile(community=CommunityMetrics(referrals=3)), history, NOW,
        )
        assert 0 <= profile.behavior_score <= 100
        assert profile.quality_trend is QualityTrend.improving
        assert profile.learning_progression == 100.0

    def test_burst_flagged(self):
        history = _daily(6, every=timedelta(minutes=5))
        profile = BehaviorAnalyzer().analyze(UserProfile(), history, NOW)
        assert "burst_activity" in profile.risk_flags


class TestBehaviorTracker:
    def test_starts_empty(self):
        count, metrics = BehaviorAnalyzer().tracker.snapshot()
        assert count == 0
        assert metrics == BehaviorMetrics()

    def test_running_mean(self):
        analyzer = BehaviorAnalyzer()
        analyzer.tracker.record(BehaviorMetrics(consistency=100))
        analyzer.tracker.record(BehaviorMetrics(consistency=50))
        count, metrics = analyzer.tracker.snapshot()
        assert count == 2
        assert metrics.consistency == pytest.approx(75.0)

    def test_analysis_records_but_does_not_read(self):
        analyzer = BehaviorAnalyzer()
        analyzer.tracker.record(BehaviorMetrics(100, 100, 100, 100, 100))
        profile = analyzer.analyze(UserProfile(), [], NOW)
        assert profile.behavior_score == 0.0
        assert analyzer.tracker.snapshot()[0] == 2

    def test_reset(self):
        analyzer = BehaviorAnalyzer()
        analyzer.analyze(UserProfile(), _daily(3), NOW)
        analyzer.tracker.reset()
        assert analyzer.tracker.snapshot() == (0, BehaviorMetrics())

    def test_record_is_safe_across_threads(self):
        tracker = BehaviorAnalyzer().tracker

        def hammer():
            for _ in range(1000):
                tracker.record(BehaviorMetrics(consistency=40, quality=60))

        with ThreadPoolExecutor(max_workers=8) as pool:
            for future in [pool.submit(hammer) for _ in range(8)]:
                future.result()
        count, metrics = tracker.snapshot()
        assert count == 8000
        assert metrics.consistency == pytest.approx(40.0)
        assert metrics.quality == pytest.approx(60.0)
