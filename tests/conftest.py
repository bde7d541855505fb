"""Pytest fixtures and test utilities."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from flatmatch.alerts.sources import (
    DedupStore,
    FetchError,
    ListingSource,
    NotificationChannel,
    UserStore,
)
from flatmatch.config import DATA_DIR, Settings
from flatmatch.locations import LocationResolver, ProximityGraph
from flatmatch.models import (
    ComfortCriteria,
    ListingRecord,
    SentAlertRecord,
    StrictCriteria,
    User,
    UserCriteria,
)
from flatmatch.scoring import ScoringEngine


@pytest.fixture(scope="session")
def resolver() -> LocationResolver:
    """Resolver over the shipped location data."""
    return LocationResolver.from_file(DATA_DIR / "known_locations.json")


@pytest.fixture(scope="session")
def graph() -> ProximityGraph:
    """Proximity graph over the shipped data."""
    return ProximityGraph.from_file(DATA_DIR / "proximity.json")


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Default settings with an isolated database."""
    return Settings(db_path=tmp_path / "flatmatch.db", _env_file=None)


@pytest.fixture
def engine(resolver: LocationResolver, settings: Settings) -> ScoringEngine:
    """ScoringEngine instance."""
    return ScoringEngine(resolver=resolver, settings=settings)


@pytest.fixture
def plainpalais_listing() -> ListingRecord:
    """3-room flat in Plainpalais, top floor with balcony."""
    return ListingRecord(
        id="ad-1",
        created_at=datetime.now(timezone.utc) - timedelta(hours=2),
        full_address="Rue de Carouge 12",
        city="Genève",
        postal_code="1205",
        neighborhood="Plainpalais",
        street="Rue de Carouge",
        street_number="12",
        rooms=3,
        dwelling_type="Appartement",
        surface_m2=70,
        top_floor=True,
        balcony=True,
        rent_monthly=2000,
        rent_total=2200,
        url="https://example.com/ad-1",
    )


@pytest.fixture
def carouge_criteria() -> UserCriteria:
    """Criteria of user 123: Carouge or Plainpalais, 3+ rooms, max 2500."""
    return UserCriteria(
        user_id=123,
        strict=StrictCriteria(
            budget_max=2500,
            zones=["Carouge", "Plainpalais"],
            rooms_min=3,
            dwelling_types=["Appartement"],
        ),
        comfort=ComfortCriteria(
            top_floor=True,
            balcony=True,
            elevator=True,
        ),
        summary="3 rooms in Carouge or Plainpalais, max 2500 CHF",
    )


def make_listing(listing_id: str, hours_ago: float = 1, **kwargs) -> ListingRecord:
    """Build a listing created ``hours_ago`` hours ago."""
    return ListingRecord(
        id=listing_id,
        created_at=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
        **kwargs,
    )


class FakeListingSource(ListingSource):
    """In-memory listing source."""

    def __init__(self, listings: list[ListingRecord], fail: bool = False):
        self.listings = listings
        self.fail = fail
        self.calls = 0

    async def recent_listings(self, hours: int) -> list[ListingRecord]:
        self.calls += 1
        if self.fail:
            raise FetchError("fake", "listing source down")
        return list(self.listings)


class FakeUserStore(UserStore):
    """In-memory users and criteria."""

    def __init__(
        self,
        users: list[User],
        criteria: dict[int, UserCriteria],
        failing_users: Optional[set[int]] = None,
    ):
        self.users = users
        self.criteria = criteria
        self.failing_users = failing_users or set()

    async def active_users(self) -> list[User]:
        return list(self.users)

    async def criteria_for(self, user_id: int) -> Optional[UserCriteria]:
        if user_id in self.failing_users:
            raise FetchError("fake", f"criteria unavailable for {user_id}")
        return self.criteria.get(user_id)


class FakeDedupStore(DedupStore):
    """In-memory dedup store keyed by (user, listing)."""

    def __init__(self):
        self.records: dict[tuple[int, str], SentAlertRecord] = {}

    async def exists(self, user_id: int, listing_id: str) -> bool:
        return (user_id, listing_id) in self.records

    async def record_alert(self, record: SentAlertRecord) -> bool:
        key = (record.user_id, record.listing_id)
        if key in self.records:
            return False
        self.records[key] = record
        return True

    async def set_user_action(self, user_id: int, listing_id: str, action: str) -> None:
        key = (user_id, listing_id)
        if key in self.records:
            self.records[key] = self.records[key].model_copy(update={"user_action": action})


class RecordingChannel(NotificationChannel):
    """Channel that records deliveries, optionally failing for some users."""

    def __init__(self, failing_users: Optional[set[int]] = None, raise_for: Optional[set[int]] = None):
        self.sent: list[tuple[int, str, Optional[str]]] = []
        self.failing_users = failing_users or set()
        self.raise_for = raise_for or set()

    async def deliver(self, user_id: int, message: str, media_url: Optional[str] = None) -> bool:
        if user_id in self.raise_for:
            raise RuntimeError("channel exploded")
        if user_id in self.failing_users:
            return False
        self.sent.append((user_id, message, media_url))
        return True


@pytest.fixture
def onboarded_user() -> User:
    return User(user_id=123, onboarding_completed=True)
