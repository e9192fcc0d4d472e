"""
Tests for the gamification strategy (presentation only).
"""
from datetime import datetime, timezone

from app.services.behavior import BehaviorAnalyzer
from app.services.gamification import build_strategy
from app.services.photo_verification import EligibilityTier, VerificationResult
from app.services.submission import CommunityMetrics, StreakData, UserProfile

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _behavior(profile=None, history=()):
    return BehaviorAnalyzer().analyze(profile or UserProfile(), history, NOW)


class TestChallenges:
    def test_new_user_gets_both_challenges(self):
        strategy = build_strategy(_behavior(), UserProfile())
        titles = [c.title for c in strategy.challenges]
        assert titles == ["7-Day Green Streak", "Eco-Diversity Explorer"]
        assert strategy.challenges[0].reward == 50
        assert strategy.challenges[1].difficulty == "hard"


class TestAchievements:
    def test_first_step_for_new_user(self):
        assert "first_green_step" in build_strategy(_behavior(), None).achievements

    def test_streak_and_premium(self):
        profile = UserProfile(streak=StreakData(current_streak=8))
        premium = VerificationResult(
            is_verified=True,
            verification_score=95,
            confidence=90,
            token_eligibility=EligibilityTier.premium_tier,
        )
        achievements = build_strategy(_behavior(profile), profile, premium).achievements
        assert "week_of_green" in achievements
        assert "picture_perfect" in achievements


class TestSocialFeatures:
    def test_low_engagement(self):
        assert build_strategy(_behavior(), None).social_features == ["activity_sharing", "friend_invites"]

    def test_mentor_program_for_social_users(self):
        profile = UserProfile(community=CommunityMetrics(referrals=3, mentorship_points=2))
        features = build_strategy(_behavior(profile), profile).social_features
        assert "mentor_program" in features
