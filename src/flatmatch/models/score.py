"""Scoring results and sent-alert records."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


USER_ACTION_SENT = "SENT"
USER_ACTION_DELIVERY_FAILED = "DELIVERY_FAILED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CriterionCheck(BaseModel):
    """Audit record for one evaluated criterion."""

    name: str
    strict: bool
    passed: bool
    points_awarded: int = Field(..., ge=0)
    points_possible: int = Field(..., ge=0)
    explanation: str


class ScoreResult(BaseModel):
    """Outcome of scoring one listing against one user's criteria.

    The checks list is always populated, including on rejection, so that
    operator tooling can see why a listing did or did not match.
    """

    total: int = Field(default=0, ge=0)
    strict_score: int = Field(default=0, ge=0)
    comfort_score: int = Field(default=0, ge=0)
    strict_matches: list[str] = Field(default_factory=list)
    comfort_matches: list[str] = Field(default_factory=list)
    badges: list[str] = Field(default_factory=list)
    checks: list[CriterionCheck] = Field(default_factory=list)
    rejection_reasons: list[str] = Field(default_factory=list)

    @property
    def is_match(self) -> bool:
        """True when every strict criterion passed."""
        return self.total > 0

    def failed_checks(self, strict_only: bool = False) -> list[CriterionCheck]:
        """Checks that did not pass, optionally restricted to strict ones."""
        return [
            c for c in self.checks
            if not c.passed and (c.strict or not strict_only)
        ]


class SentAlertRecord(BaseModel):
    """Fact that an alert for (user, listing) was dispatched.

    Its existence is the only deduplication signal; at most one record
    may exist per pair.
    """

    user_id: int
    listing_id: str
    score_total: int
    strict_score: int
    comfort_score: int
    strict_matches: list[str] = Field(default_factory=list)
    comfort_matches: list[str] = Field(default_factory=list)
    badges: list[str] = Field(default_factory=list)
    sent_at: datetime = Field(default_factory=_utcnow)
    user_action: str = USER_ACTION_SENT

    @classmethod
    def from_result(
        cls, user_id: int, listing_id: str, result: ScoreResult
    ) -> "SentAlertRecord":
        """Snapshot a score result for the dedup store."""
        return cls(
            user_id=user_id,
            listing_id=listing_id,
            score_total=result.total,
            strict_score=result.strict_score,
            comfort_score=result.comfort_score,
            strict_matches=list(result.strict_matches),
            comfort_matches=list(result.comfort_matches),
            badges=list(result.badges),
        )
