"""Contracts of the collaborators used by the alert poller.

The poller depends only on these abstract interfaces. A SQLite-backed
implementation of the stores lives in ``flatmatch.storage``; notification
channels live in ``flatmatch.alerts.notifier``.

Example usage:
    class MyListingSource(ListingSource):
        name = "my_source"

        async def recent_listings(self, hours):
            # Implementation here
            pass
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.criteria import User, UserCriteria
from ..models.listing import ListingRecord
from ..models.score import SentAlertRecord


class ListingSource(ABC):
    """Provides recently ingested listings."""

    name: str = "listings"

    @abstractmethod
    async def recent_listings(self, hours: int) -> list[ListingRecord]:
        """Return every listing created within the last ``hours`` hours.

        Raises:
            FetchError: If the source is unavailable
        """
        pass


class UserStore(ABC):
    """Provides alertable users and their criteria."""

    name: str = "users"

    @abstractmethod
    async def active_users(self) -> list[User]:
        """Users that are active, not paused and done with onboarding.

        Raises:
            FetchError: If the store is unavailable
        """
        pass

    @abstractmethod
    async def criteria_for(self, user_id: int) -> Optional[UserCriteria]:
        """Current criteria of a user, or None if none were stored."""
        pass


class DedupStore(ABC):
    """Record of alerts already sent, one per (user, listing) pair."""

    name: str = "sent_alerts"

    @abstractmethod
    async def exists(self, user_id: int, listing_id: str) -> bool:
        """Whether an alert was already recorded for the pair."""
        pass

    @abstractmethod
    async def record_alert(self, record: SentAlertRecord) -> bool:
        """Atomically insert a record unless one exists for the pair.

        Returns:
            True if inserted, False if the pair was already recorded.
            An existing record is a normal outcome, not an error.
        """
        pass

    @abstractmethod
    async def set_user_action(self, user_id: int, listing_id: str, action: str) -> None:
        """Update the outcome stored on an existing record.

        The record itself is never removed, so the pair stays claimed.
        """
        pass


class NotificationChannel(ABC):
    """Delivers rendered alert messages to users."""

    name: str = "channel"

    @abstractmethod
    async def deliver(
        self, user_id: int, message: str, media_url: Optional[str] = None
    ) -> bool:
        """Send a message to a user.

        Returns:
            True if delivered. Failures return False rather than raising.
        """
        pass


class CollaboratorError(Exception):
    """Base exception for collaborator errors.

    Attributes:
        source: Name of the collaborator that raised the error
        message: Error description
    """

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"[{source}] {message}")


class FetchError(CollaboratorError):
    """Raised when listings, users or criteria cannot be fetched."""


class DeliveryError(CollaboratorError):
    """Raised by channels that cannot deliver a message."""

    def __init__(self, source: str, user_id: int, reason: str):
        self.user_id = user_id
        super().__init__(source, f"delivery to {user_id} failed: {reason}")
