"""Data models for flatmatch."""

from flatmatch.models.criteria import (
    ComfortCriteria,
    StrictCriteria,
    User,
    UserCriteria,
)
from flatmatch.models.listing import ListingRecord
from flatmatch.models.score import (
    USER_ACTION_DELIVERY_FAILED,
    USER_ACTION_SENT,
    CriterionCheck,
    ScoreResult,
    SentAlertRecord,
)

__all__ = [
    "ListingRecord",
    "StrictCriteria",
    "ComfortCriteria",
    "UserCriteria",
    "User",
    "CriterionCheck",
    "ScoreResult",
    "SentAlertRecord",
    "USER_ACTION_SENT",
    "USER_ACTION_DELIVERY_FAILED",
]
