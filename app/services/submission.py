"""
Submission value objects shared by every scoring component.

Public API
----------
ActivitySubmission, SubmissionMetadata, HistoryEntry, UserProfile
validate_submission(submission)   -> None   (raises SubmissionValidationError)

All types are frozen dataclasses: a submission is never mutated after it
enters the pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from app.core.errors import SubmissionValidationError
from app.services.catalog import KNOWN_ACTIVITY_TYPES


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class SubmissionMetadata:
    timestamp: Optional[datetime] = None
    gps_coordinates: Optional[tuple[float, float]] = None
    device_info: Optional[str] = None
    third_party_verified: bool = False


@dataclass(frozen=True)
class HistoryEntry:
    """One past activity from the user-profile store."""
    activity_type: str
    timestamp: datetime
    quality_score: float = 0.0


@dataclass(frozen=True)
class StreakData:
    current_streak: int = 0
    longest_streak: int = 0


@dataclass(frozen=True)
class CommunityMetrics:
    referrals: int = 0
    social_shares: int = 0
    mentorship_points: int = 0


@dataclass(frozen=True)
class UserProfile:
    user_id: Optional[str] = None
    streak: Optional[StreakData] = None
    community: Optional[CommunityMetrics] = None
    daily_earned: float = 0.0
    level: int = 1


PhotoData = Union[bytes, str]


@dataclass(frozen=True)
class ActivitySubmission:
    activity_type: Optional[str]
    photo_data: Optional[PhotoData]
    user_wallet: Optional[str]
    scale: float = 1.0
    location: Optional[str] = None
    metadata: SubmissionMetadata = field(default_factory=SubmissionMetadata)
    user_profile: Optional[UserProfile] = None
    user_history: tuple[HistoryEntry, ...] = ()

    # Quality evidence
    documentation: tuple[str, ...] = ()
    before_after_photos: bool = False
    community_involvement: bool = False
    measurable_outcomes: bool = False


def validate_submission(submission: ActivitySubmission) -> None:
    """
    Reject submissions that cannot enter the pipeline.
    Wallet *format* is the issuer's concern; here it only has to be present.
    """
    if not submission.activity_type:
        raise SubmissionValidationError("activity_type is required", field="activity_type")
    if submission.activity_type not in KNOWN_ACTIVITY_TYPES:
        raise SubmissionValidationError(
            f"unknown activity_type '{submission.activity_type}'", field="activity_type"
        )
    if submission.scale is None or submission.scale <= 0:
        raise SubmissionValidationError("scale must be a positive number", field="scale")
    if not submission.photo_data:
        raise SubmissionValidationError("photo_data is required", field="photo_data")
    if not submission.user_wallet:
        raise SubmissionValidationError("user_wallet is required", field="user_wallet")
