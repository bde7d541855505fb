"""User and search criteria models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StrictCriteria(BaseModel):
    """Deal-breaker requirements.

    A None (or empty list) value means the user did not specify the
    criterion, which then passes automatically.
    """

    budget_max: int | None = Field(default=None, ge=0, description="Maximum total rent in CHF")
    zones: list[str] = Field(default_factory=list, description="Desired canonical zones")
    rooms_min: float | None = Field(default=None, ge=0)
    rooms_max: float | None = Field(default=None, ge=0)
    dwelling_types: list[str] = Field(default_factory=list, description="Accepted dwelling types")
    availability: str | None = Field(default=None, description="Desired move-in date, free text")

    @model_validator(mode="after")
    def _check_room_bounds(self) -> "StrictCriteria":
        if (
            self.rooms_min is not None
            and self.rooms_max is not None
            and self.rooms_min > self.rooms_max
        ):
            raise ValueError("rooms_min must not exceed rooms_max")
        return self


class ComfortCriteria(BaseModel):
    """Nice-to-have preferences that add bonus points but never veto."""

    top_floor: bool = False
    quiet: bool = False
    balcony: bool = False
    furnished: bool = False
    parking: bool = False
    elevator: bool = False
    extras: list[str] = Field(default_factory=list)


class UserCriteria(BaseModel):
    """Criteria owned by one user, replaced wholesale on re-onboarding."""

    user_id: int
    strict: StrictCriteria = Field(default_factory=StrictCriteria)
    comfort: ComfortCriteria = Field(default_factory=ComfortCriteria)
    summary: str = Field(default="", description="Human-readable recap from onboarding")
    updated_at: datetime = Field(default_factory=_utcnow)


class User(BaseModel):
    """A subscriber of the alert service."""

    user_id: int = Field(..., description="Chat identifier of the user")
    is_active: bool = True
    is_paused: bool = False
    onboarding_completed: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_alertable(self) -> bool:
        """Active, not paused and done with onboarding."""
        return self.is_active and not self.is_paused and self.onboarding_completed
