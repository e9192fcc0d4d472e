"""
Tests for the reward calculator.

Covers:
- Token tiers and the seasonal calendar
- Each factor in isolation
- Additive vs multiplicative seasonal handling
- Daily cap invariants (never negative, never above the remaining allowance)
- Fail-soft base reward on a broken factor
- Next-level incentive
"""
from datetime import datetime, timezone

import pytest

from app.services.photo_verification import EligibilityTier, VerificationResult
from app.services.rewards import (
    RewardActivity,
    RewardBreakdown,
    RewardCalculator,
    SeasonalMode,
    TokenTier,
    determine_token_tier,
    seasonal_multiplier_for,
)
from app.services.submission import CommunityMetrics, StreakData, UserProfile

JANUARY = datetime(2026, 1, 15, tzinfo=timezone.utc)
APRIL = datetime(2026, 4, 15, tzinfo=timezone.utc)

PREMIUM = VerificationResult(
    is_verified=True,
    verification_score=90,
    confidence=80,
    token_eligibility=EligibilityTier.premium_tier,
)
TREE = RewardActivity(activity_type="tree-planting", environmental_impact_score=95)


def _calc(activity=TREE, verification=PREMIUM, profile=None, behavior=0.0, as_of=JANUARY, **kwargs):
    return RewardCalculator(**kwargs).calculate(
        activity, verification, profile or UserProfile(), behavior_score=behavior, as_of=as_of,
    )


class TestTiersAndSeasons:
    @pytest.mark.parametrize("score,tier", [
        (100, TokenTier.premium),
        (90, TokenTier.premium),
        (89, TokenTier.standard),
        (80, TokenTier.standard),
        (79, TokenTier.basic),
        (0, TokenTier.basic),
    ])
    def test_token_tier(self, score, tier):
        assert determine_token_tier(score) is tier

    @pytest.mark.parametrize("month,multiplier", [
        (1, 1.0), (3, 1.2), (5, 1.2), (6, 1.0), (9, 1.15), (11, 1.15), (12, 1.0),
    ])
    def test_seasonal_calendar(self, month, multiplier):
        assert seasonal_multiplier_for(month) == multiplier


class TestFactors:
    calc = RewardCalculator()

    def test_base_reward_uses_activity_multiplier(self):
        assert self.calc.calculate_base_reward(TREE) == 20.0
        assert self.calc.calculate_base_reward(RewardActivity("skydiving")) == 10.0

    @pytest.mark.parametrize("tier,bonus", [
        (EligibilityTier.premium_tier, 10.0),
        (EligibilityTier.standard_tier, 5.0),
        (EligibilityTier.basic_tier, 0.0),
        (EligibilityTier.not_eligible, 0.0),
    ])
    def test_quality_bonus(self, tier, bonus):
        assert self.calc.calculate_quality_bonus(tier) == bonus

    def test_behavior_bonus(self):
        assert self.calc.calculate_behavior_bonus(50) == 5.0

    @pytest.mark.parametrize("streak,bonus", [(0, 0.0), (2, 0.0), (3, 3.0), (7, 7.0), (15, 10.0)])
    def test_streak_bonus(self, streak, bonus):
        assert self.calc.calculate_streak_bonus(StreakData(current_streak=streak)) == pytest.approx(bonus)

    def test_missing_streak(self):
        assert self.calc.calculate_streak_bonus(None) == 0.0

    def test_impact_multiplier_defaults_to_fifty(self):
        assert self.calc.calculate_impact_multiplier(TREE) == pytest.approx(4.75)
        assert self.calc.calculate_impact_multiplier(RewardActivity("recycling")) == 2.5

    def test_community_bonus_capped(self):
        assert self.calc.calculate_community_bonus(CommunityMetrics(referrals=1)) == 2.0
        assert self.calc.calculate_community_bonus(CommunityMetrics(referrals=10)) == 5.0

    def test_rarity_bonus(self):
        rare = RewardActivity("wildlife-conservation", location="protected_area")
        assert self.calc.calculate_rarity_bonus(rare) == pytest.approx(8.2)
        assert self.calc.calculate_rarity_bonus(RewardActivity("recycling", location="urban")) == 0.0


class TestSeasonalMode:
    def test_additive_sums_raw_multiplier_in_january(self):
        result = _calc()
        assert result.breakdown.seasonal_multiplier == 1.0
        assert result.reward_amount == pytest.approx(36.75)

    def test_additive_spring_adds_one_point_two_tokens(self):
        assert _calc(as_of=APRIL).reward_amount == pytest.approx(36.95)

    def test_multiplicative_scales_other_terms(self):
        result = _calc(as_of=APRIL, seasonal_mode=SeasonalMode.multiplicative)
        assert result.reward_amount == pytest.approx(42.9)

    def test_multiplicative_neutral_outside_season(self):
        result = _calc(seasonal_mode=SeasonalMode.multiplicative)
        assert result.reward_amount == pytest.approx(35.75)

    def test_breakdown_total(self):
        breakdown = RewardBreakdown(base_reward=10, quality_bonus=5, seasonal_multiplier=1.2)
        assert breakdown.total(SeasonalMode.additive) == pytest.approx(16.2)
        assert breakdown.total(SeasonalMode.multiplicative) == pytest.approx(18.0)


class TestDailyCap:
    def test_remaining_allowance(self):
        result = _calc(profile=UserProfile(daily_earned=90))
        assert result.reward_amount == 10.0

    def test_exhausted_allowance(self):
        assert _calc(profile=UserProfile(daily_earned=100)).reward_amount == 0.0

    def test_overspent_allowance_floors_at_zero(self):
        assert _calc(profile=UserProfile(daily_earned=150)).reward_amount == 0.0

    def test_cap_applies_to_large_totals(self):
        assert _calc(base_reward=100.0).reward_amount == 100.0

    def test_invariant_over_range(self):
        calc = RewardCalculator()
        profile_kwargs = dict(
            streak=StreakData(current_streak=10),
            community=CommunityMetrics(referrals=5, social_shares=5),
        )
        for earned in (0, 10, 50, 70, 99.5, 100, 120):
            result = calc.calculate(
                TREE, PREMIUM, UserProfile(daily_earned=earned, **profile_kwargs),
                behavior_score=80, as_of=APRIL,
            )
            assert 0 <= result.reward_amount <= max(0.0, min(100.0, 100.0 - earned))


class TestFailSoft:
    def test_broken_factor_returns_base_reward(self):
        broken = RewardActivity("tree-planting", environmental_impact_score="ninety")
        result = _calc(activity=broken)
        assert result.reward_amount == 10.0
        assert result.token_tier is TokenTier.basic
        assert result.breakdown == RewardBreakdown()
        assert result.error


class TestPresentation:
    def test_next_level_from_standard(self):
        incentive = RewardCalculator().next_level_incentive(85)
        assert incentive.current_tier is TokenTier.standard
        assert incentive.next_tier is TokenTier.premium
        assert incentive.score_needed == 5
        assert incentive.additional_tokens == 5.0

    def test_premium_is_top_level(self):
        incentive = RewardCalculator().next_level_incentive(95)
        assert incentive.next_tier is None
        assert incentive.score_needed == 0

    def test_bonus_details_list_nonzero_terms(self):
        result = _calc(as_of=APRIL)
        assert "base reward: +20.00 GREEN" in result.bonus_details
        assert "Seasonal boost x1.2 is active" in result.bonus_details
        assert not any(d.startswith("streak bonus") for d in result.bonus_details)
