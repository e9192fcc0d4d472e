"""
Gamification strategy: challenges, achievements and social nudges derived
from a BehaviorProfile. Presentation only; nothing here feeds a score.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from app.services.behavior import BehaviorProfile, EngagementPattern
from app.services.photo_verification import EligibilityTier, VerificationResult
from app.services.submission import UserProfile


@dataclass(frozen=True)
class Challenge:
    type: str
    title: str
    description: str
    reward: int
    difficulty: str


@dataclass(frozen=True)
class GamificationStrategy:
    challenges: list[Challenge] = field(default_factory=list)
    achievements: list[str] = field(default_factory=list)
    social_features: list[str] = field(default_factory=list)


def generate_challenges(behavior: BehaviorProfile) -> list[Challenge]:
    challenges = []
    if behavior.consistency_score < 50:
        challenges.append(Challenge(
            type="consistency",
            title="7-Day Green Streak",
            description="Complete eco-activities for 7 consecutive days",
            reward=50,
            difficulty="medium",
        ))
    if behavior.diversity_score < 60:
        challenges.append(Challenge(
            type="diversity",
            title="Eco-Diversity Explorer",
            description="Complete 5 different types of eco-activities this month",
            reward=75,
            difficulty="hard",
        ))
    return challenges


def recommend_achievements(
    behavior: BehaviorProfile,
    profile: Optional[UserProfile],
    verification: Optional[VerificationResult] = None,
) -> list[str]:
    achievements = []
    if behavior.engagement_pattern is EngagementPattern.new_user:
        achievements.append("first_green_step")
    streak = profile.streak if profile else None
    if streak is not None and streak.current_streak >= 7:
        achievements.append("week_of_green")
    if behavior.diversity_score >= 50:
        achievements.append("eco_generalist")
    if verification is not None and verification.token_eligibility is EligibilityTier.premium_tier:
        achievements.append("picture_perfect")
    return achievements


def recommend_social_features(behavior: BehaviorProfile) -> list[str]:
    if behavior.social_engagement >= 60:
        return ["mentor_program", "team_challenges"]
    if behavior.social_engagement >= 30:
        return ["team_challenges", "activity_sharing"]
    return ["activity_sharing", "friend_invites"]


def build_strategy(
    behavior: BehaviorProfile,
    profile: Optional[UserProfile],
    verification: Optional[VerificationResult] = None,
) -> GamificationStrategy:
    return GamificationStrategy(
        challenges=generate_challenges(behavior),
        achievements=recommend_achievements(behavior, profile, verification),
        social_features=recommend_social_features(behavior),
    )
