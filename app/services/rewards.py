"""
Reward calculator: turns a verified activity into a capped GREEN token amount.

Eight factors are computed independently (B = base token constant):

  base_reward         B * activity_multiplier[type]
  quality_bonus       B * (tier_multiplier[eligibility] - 1)
  behavior_bonus      B * behavior_score / 100
  streak_bonus        0 below a 3-day streak, else B * min(streak * 0.1, 1)
  impact_multiplier   environmental_impact_score / 100 * B * 0.5
  community_bonus     min(referrals*2 + shares + mentorship*3, B * 0.5)
  seasonal_multiplier 1.2 Mar-May, 1.15 Sep-Nov, else 1.0
  rarity_bonus        B * (activity_rarity * location_rarity - 1)

SeasonalMode.additive sums the raw seasonal multiplier as an eighth token
term (historical behavior, kept until product decides otherwise);
SeasonalMode.multiplicative scales the other seven instead.

capped = max(0, min(total, max_daily - daily_earned, max_daily))

Token tier comes from verification_score alone and is a different
vocabulary from the photo EligibilityTier.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from app.services.catalog import (
    ACTIVITY_MULTIPLIERS,
    ACTIVITY_RARITY,
    LOCATION_RARITY,
)
from app.services.photo_verification import EligibilityTier, VerificationResult
from app.services.submission import CommunityMetrics, StreakData, UserProfile, utcnow

logger = logging.getLogger(__name__)


class TokenTier(str, enum.Enum):
    basic = "basic"
    standard = "standard"
    premium = "premium"


class SeasonalMode(str, enum.Enum):
    additive = "additive"
    multiplicative = "multiplicative"


TIER_MULTIPLIERS: dict[str, float] = {
    TokenTier.premium.value: 2.0,
    TokenTier.standard.value: 1.5,
    TokenTier.basic.value: 1.0,
}

_TIER_THRESHOLDS = ((TokenTier.premium, 90), (TokenTier.standard, 80))
_TIER_ORDER = (TokenTier.basic, TokenTier.standard, TokenTier.premium)
_TIER_FLOOR = {TokenTier.basic: 0, TokenTier.standard: 80, TokenTier.premium: 90}

_STREAK_MIN = 3
_SPRING_MONTHS = (3, 4, 5)
_AUTUMN_MONTHS = (9, 10, 11)
_DEFAULT_IMPACT_SCORE = 50.0


@dataclass(frozen=True)
class RewardActivity:
    activity_type: Optional[str]
    environmental_impact_score: Optional[float] = None
    carbon_impact: float = 0.0
    location: Optional[str] = None


@dataclass(frozen=True)
class RewardBreakdown:
    base_reward: float = 0.0
    quality_bonus: float = 0.0
    behavior_bonus: float = 0.0
    streak_bonus: float = 0.0
    impact_multiplier: float = 0.0
    community_bonus: float = 0.0
    seasonal_multiplier: float = 1.0
    rarity_bonus: float = 0.0

    def total(self, mode: SeasonalMode = SeasonalMode.additive) -> float:
        values = asdict(self)
        if mode is SeasonalMode.multiplicative:
            seasonal = values.pop("seasonal_multiplier")
            return sum(values.values()) * seasonal
        return sum(values.values())


@dataclass(frozen=True)
class NextLevelIncentive:
    current_tier: TokenTier
    next_tier: Optional[TokenTier]
    score_needed: int
    additional_tokens: float


@dataclass(frozen=True)
class RewardResult:
    reward_amount: float
    token_tier: TokenTier
    breakdown: RewardBreakdown
    next_level_incentive: Optional[NextLevelIncentive] = None
    bonus_details: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    error: Optional[str] = None


def determine_token_tier(verification_score: float) -> TokenTier:
    for tier, floor in _TIER_THRESHOLDS:
        if verification_score >= floor:
            return tier
    return TokenTier.basic


def seasonal_multiplier_for(month: int) -> float:
    if month in _SPRING_MONTHS:      # Earth Day season
        return 1.2
    if month in _AUTUMN_MONTHS:      # Climate Action season
        return 1.15
    return 1.0


class RewardCalculator:

    def __init__(
        self,
        base_reward: float = 10.0,
        max_daily_reward: float = 100.0,
        seasonal_mode: SeasonalMode = SeasonalMode.additive,
    ):
        self.base_reward = base_reward
        self.max_daily_reward = max_daily_reward
        self.seasonal_mode = SeasonalMode(seasonal_mode)

    # -- factors ------------------------------------------------------------

    def calculate_base_reward(self, activity: RewardActivity) -> float:
        return self.base_reward * ACTIVITY_MULTIPLIERS.get(activity.activity_type or "", 1.0)

    def calculate_quality_bonus(self, eligibility: Optional[EligibilityTier]) -> float:
        tier = EligibilityTier(eligibility or EligibilityTier.basic_tier).value
        multiplier = TIER_MULTIPLIERS.get(tier.replace("_tier", ""), 1.0)
        return self.base_reward * (multiplier - 1.0)

    def calculate_behavior_bonus(self, behavior_score: float) -> float:
        return self.base_reward * (behavior_score / 100)

    def calculate_streak_bonus(self, streak: Optional[StreakData]) -> float:
        if streak is None or streak.current_streak < _STREAK_MIN:
            return 0.0
        return self.base_reward * min(streak.current_streak * 0.1, 1.0)

    def calculate_impact_multiplier(self, activity: RewardActivity) -> float:
        score = activity.environmental_impact_score
        if score is None:
            score = _DEFAULT_IMPACT_SCORE
        return (score / 100) * self.base_reward * 0.5

    def calculate_community_bonus(self, community: Optional[CommunityMetrics]) -> float:
        if community is None:
            return 0.0
        raw = (
            community.referrals * 2
            + community.social_shares * 1
            + community.mentorship_points * 3
        )
        return min(float(raw), self.base_reward * 0.5)

    def calculate_rarity_bonus(self, activity: RewardActivity) -> float:
        activity_rarity = ACTIVITY_RARITY.get(activity.activity_type or "", 1.0)
        location_rarity = LOCATION_RARITY.get(activity.location or "", 1.0)
        return self.base_reward * (activity_rarity * location_rarity - 1.0)

    def apply_daily_limits(self, total: float, daily_earned: float) -> float:
        remaining = self.max_daily_reward - (daily_earned or 0.0)
        return max(0.0, min(total, remaining, self.max_daily_reward))

    # -- presentation -------------------------------------------------------

    def next_level_incentive(self, verification_score: int) -> NextLevelIncentive:
        current = determine_token_tier(verification_score)
        idx = _TIER_ORDER.index(current)
        if idx == len(_TIER_ORDER) - 1:
            return NextLevelIncentive(current, None, 0, 0.0)
        nxt = _TIER_ORDER[idx + 1]
        return NextLevelIncentive(
            current_tier=current,
            next_tier=nxt,
            score_needed=max(_TIER_FLOOR[nxt] - int(verification_score), 0),
            additional_tokens=self.base_reward * (
                TIER_MULTIPLIERS[nxt.value] - TIER_MULTIPLIERS[current.value]
            ),
        )

    @staticmethod
    def _bonus_details(breakdown: RewardBreakdown) -> list[str]:
        details = []
        for name, value in asdict(breakdown).items():
            if name == "seasonal_multiplier":
                if value != 1.0:
                    details.append(f"Seasonal boost x{value:g} is active")
                continue
            if value:
                details.append(f"{name.replace('_', ' ')}: {value:+.2f} GREEN")
        return details

    @staticmethod
    def _recommendations(breakdown: RewardBreakdown) -> list[str]:
        recs = []
        if breakdown.streak_bonus == 0:
            recs.append("Log activities 3 days in a row to unlock streak bonuses")
        if breakdown.community_bonus == 0:
            recs.append("Refer friends or share activities to earn community bonuses")
        if breakdown.rarity_bonus == 0:
            recs.append("Activities in rural or protected areas earn rarity bonuses")
        return recs

    # -- entry point --------------------------------------------------------

    def calculate(
        self,
        activity: RewardActivity,
        verification: VerificationResult,
        profile: Optional[UserProfile],
        behavior_score: float = 0.0,
        as_of: Optional[datetime] = None,
    ) -> RewardResult:
        """
        Never raises: a broken factor yields the base reward with `error` set.

        `behavior_score` comes from this submission's own behavior snapshot.
        In sequential use that equals the running behavior score of the last
        written metrics.
        """
        profile = profile or UserProfile()
        try:
            breakdown = RewardBreakdown(
                base_reward=self.calculate_base_reward(activity),
                quality_bonus=self.calculate_quality_bonus(verification.token_eligibility),
                behavior_bonus=self.calculate_behavior_bonus(behavior_score),
                streak_bonus=self.calculate_streak_bonus(profile.streak),
                impact_multiplier=self.calculate_impact_multiplier(activity),
                community_bonus=self.calculate_community_bonus(profile.community),
                seasonal_multiplier=seasonal_multiplier_for((as_of or utcnow()).month),
                rarity_bonus=self.calculate_rarity_bonus(activity),
            )
            total = breakdown.total(self.seasonal_mode)
            capped = self.apply_daily_limits(total, profile.daily_earned)
            return RewardResult(
                reward_amount=round(capped, 4),
                token_tier=determine_token_tier(verification.verification_score),
                breakdown=breakdown,
                next_level_incentive=self.next_level_incentive(verification.verification_score),
                bonus_details=self._bonus_details(breakdown),
                recommendations=self._recommendations(breakdown),
            )
        except Exception as exc:
            logger.exception("Reward calculation failed; granting base reward")
            return RewardResult(
                reward_amount=self.base_reward,
                token_tier=TokenTier.basic,
                breakdown=RewardBreakdown(),
                error=str(exc),
            )
