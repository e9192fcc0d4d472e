"""
Activity request / response schemas.

Single:    POST /activities                  → ActivitySubmissionRequest → ProcessResponse
Batch:     POST /activities/batch            → BatchSubmissionRequest    → BatchResponse
Lookup:    GET  /activities/{process_id}     → ProcessRecordResponse
Retry:     POST /activities/{process_id}/issue → IssuanceOut
Estimate:  POST /activities/estimate         → EstimateRequest           → EstimateResponse

Semantic checks (known activity type, positive scale) are left to the
pipeline so that a bad submission still gets a fallback result.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.catalog import ActivityType
from app.services.impact import ActivityDescriptor
from app.services.submission import (
    ActivitySubmission,
    CommunityMetrics,
    HistoryEntry,
    StreakData,
    SubmissionMetadata,
    UserProfile,
)


# ---------------------------------------------------------------------------
# Submission pieces
# ---------------------------------------------------------------------------

class MetadataIn(BaseModel):
    timestamp: Optional[datetime] = Field(
        default=None, description="When the photo was taken (ISO 8601).",
    )
    gps_coordinates: Optional[tuple[float, float]] = Field(
        default=None, description="[latitude, longitude]", examples=[[40.4168, -3.7038]],
    )
    device_info: Optional[str] = Field(default=None, max_length=256)
    third_party_verified: bool = False

    def to_domain(self) -> SubmissionMetadata:
        return SubmissionMetadata(
            timestamp=self.timestamp,
            gps_coordinates=self.gps_coordinates,
            device_info=self.device_info,
            third_party_verified=self.third_party_verified,
        )


class StreakIn(BaseModel):
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)


class CommunityIn(BaseModel):
    referrals: int = Field(default=0, ge=0)
    social_shares: int = Field(default=0, ge=0)
    mentorship_points: int = Field(default=0, ge=0)


class UserProfileIn(BaseModel):
    streak: Optional[StreakIn] = None
    community: Optional[CommunityIn] = None
    daily_earned: float = Field(default=0.0, ge=0, description="GREEN already earned today.")
    level: int = Field(default=1, ge=1)


class HistoryEntryIn(BaseModel):
    activity_type: str
    timestamp: datetime
    quality_score: float = Field(default=0.0, ge=0, le=100)


class ActivitySubmissionRequest(BaseModel):
    """
    One photographed eco-activity.

    `activity_type`, `photo_data` and `user_wallet` may be missing or empty:
    such a submission still gets a result, with `success: false` and the
    fallback reward.
    """

    activity_type: Optional[str] = Field(
        default=None,
        description="One of the known activity categories.",
        examples=[ActivityType.tree_planting.value],
    )
    photo_data: Optional[str] = Field(
        default=None,
        description="Base64 image, `data:` URI, or a registered photo reference.",
    )
    user_wallet: Optional[str] = Field(
        default=None,
        max_length=128,
        examples=["0x742d35Cc6634C0532925a3b844Bc454e4438f44e"],
    )
    scale: float = Field(default=1.0, description="Size of the activity, e.g. trees planted.")
    location: Optional[str] = Field(
        default=None, description="Location tag such as `urban` or `protected_area`.",
    )
    metadata: MetadataIn = Field(default_factory=MetadataIn)
    user_profile: Optional[UserProfileIn] = Field(
        default=None,
        description="Omit to load the profile from the user-profile store.",
    )
    user_history: list[HistoryEntryIn] = Field(default_factory=list)
    documentation: list[str] = Field(default_factory=list)
    before_after_photos: bool = False
    community_involvement: bool = False
    measurable_outcomes: bool = False

    def to_submission(self) -> ActivitySubmission:
        profile = None
        if self.user_profile is not None:
            p = self.user_profile
            profile = UserProfile(
                user_id=self.user_wallet,
                streak=StreakData(**p.streak.model_dump()) if p.streak else None,
                community=CommunityMetrics(**p.community.model_dump()) if p.community else None,
                daily_earned=p.daily_earned,
                level=p.level,
            )
        return ActivitySubmission(
            activity_type=self.activity_type,
            photo_data=self.photo_data,
            user_wallet=self.user_wallet,
            scale=self.scale,
            location=self.location,
            metadata=self.metadata.to_domain(),
            user_profile=profile,
            user_history=tuple(
                HistoryEntry(h.activity_type, h.timestamp, h.quality_score)
                for h in self.user_history
            ),
            documentation=tuple(self.documentation),
            before_after_photos=self.before_after_photos,
            community_involvement=self.community_involvement,
            measurable_outcomes=self.measurable_outcomes,
        )


class BatchSubmissionRequest(BaseModel):
    items: list[ActivitySubmissionRequest] = Field(
        description="Independent submissions, processed concurrently.",
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class FallbackRewardOut(BaseModel):
    token_amount: float
    reason: str
    recommendation: str


class ProcessResponse(BaseModel):
    """
    Unified result for one submission. On success the analysis sections are
    filled; on failure only `error`, `error_code` and `fallback_reward` are.
    """
    process_id: str
    success: bool
    timestamp: str
    activity_type: Optional[str] = None
    verification: Optional[dict[str, Any]] = None
    environmental_analysis: Optional[dict[str, Any]] = None
    user_analysis: Optional[dict[str, Any]] = None
    rewards: Optional[dict[str, Any]] = None
    gamification: Optional[dict[str, Any]] = None
    issuance: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    fallback_reward: Optional[FallbackRewardOut] = None


class ActivityCount(BaseModel):
    activity_type: str
    count: int


class IssueCount(BaseModel):
    code: str
    count: int


class BatchSummaryOut(BaseModel):
    total: int
    successful: int
    failed: int
    success_rate: float = Field(description="Percentage 0–100.")
    total_rewards: float
    average_sustainability_score: float
    top_activities: list[ActivityCount]
    common_issues: list[IssueCount]


class BatchResponse(BaseModel):
    batch_id: str
    processed_at: str
    summary: BatchSummaryOut
    results: list[ProcessResponse]


class IssuanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    attempt: int
    status: str
    recipient: Optional[str] = None
    amount: float
    token_tier: Optional[str] = None
    transaction_reference: Optional[str] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    created_at: str


class ProcessRecordResponse(BaseModel):
    process_id: str
    success: bool
    activity_type: Optional[str] = None
    user_wallet: Optional[str] = None
    is_valid: bool
    reward_amount: float
    token_tier: Optional[str] = None
    verification_score: Optional[int] = None
    sustainability_score: Optional[int] = None
    error_code: Optional[str] = None
    issuance_status: Optional[str] = Field(
        default=None, description="Status of the latest attempt; null if none was made.",
    )
    issuances: list[IssuanceOut] = Field(default_factory=list)
    result: dict[str, Any]
    created_at: str


# ---------------------------------------------------------------------------
# Estimate
# ---------------------------------------------------------------------------

class EstimateRequest(BaseModel):
    """Pre-submission estimate; nothing is verified or stored."""
    model_config = ConfigDict(use_enum_values=True)

    activity_type: ActivityType
    scale: float = Field(default=1.0, gt=0)
    location: Optional[str] = None
    documentation: list[str] = Field(default_factory=list)
    before_after_photos: bool = False
    community_involvement: bool = False
    measurable_outcomes: bool = False
    third_party_verified: bool = False

    def to_descriptor(self) -> ActivityDescriptor:
        return ActivityDescriptor(
            activity_type=self.activity_type,
            scale=self.scale,
            location=self.location,
            documentation=tuple(self.documentation),
            before_after_photos=self.before_after_photos,
            community_involvement=self.community_involvement,
            measurable_outcomes=self.measurable_outcomes,
            third_party_verified=self.third_party_verified,
        )


class EstimateResponse(BaseModel):
    activity_type: str
    carbon_footprint: dict[str, Any]
    sustainability: dict[str, Any]
    impact_assessment: dict[str, Any]
