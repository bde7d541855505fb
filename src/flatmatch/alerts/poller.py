"""Background poller that matches recent listings against every active user."""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..config import Settings, config as default_config
from ..models.criteria import User, UserCriteria
from ..models.listing import ListingRecord
from ..models.score import USER_ACTION_DELIVERY_FAILED, SentAlertRecord
from ..scoring.engine import ScoringEngine
from .notifier import render_alert_message
from .sources import DedupStore, ListingSource, NotificationChannel, UserStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _media_url(listing: ListingRecord) -> Optional[str]:
    """Listing media usable as-is; storage paths need signing elsewhere."""
    if listing.media_path and listing.media_path.startswith(("http://", "https://")):
        return listing.media_path
    return None


@dataclass
class CycleReport:
    """Counters for one polling cycle."""

    started_at: datetime = field(default_factory=_now)
    finished_at: Optional[datetime] = None
    listings_seen: int = 0
    users_checked: int = 0
    pairs_scored: int = 0
    alerts_sent: int = 0
    duplicates_skipped: int = 0
    failures: int = 0
    aborted: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @property
    def duration_sec(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


class AlertPoller:
    """Periodically fan recent listings out across active users.

    Each cycle fetches listings created within the recency window and all
    alertable users, scores every (user, listing) pair not alerted yet and
    dispatches an alert for each match. A pair is claimed in the dedup
    store before dispatch, so at most one alert is ever sent per pair even
    when cycles overlap or several pollers share the store.

    Example:
        poller = AlertPoller(store, store, store, TelegramNotifier())
        report = await poller.run_cycle()
        print(f"{report.alerts_sent} alerts sent")
    """

    def __init__(
        self,
        listings: ListingSource,
        users: UserStore,
        dedup: DedupStore,
        channel: NotificationChannel,
        engine: Optional[ScoringEngine] = None,
        settings: Optional[Settings] = None,
    ):
        self.listings = listings
        self.users = users
        self.dedup = dedup
        self.channel = channel
        self.settings = settings or default_config
        self.engine = engine or ScoringEngine(settings=self.settings)

        self._task: asyncio.Task | None = None
        self._cycle_task: asyncio.Task | None = None
        self._cycle_running = False
        self._status: dict = {
            "is_running": False,
            "cycles_completed": 0,
            "last_run_started": None,
            "last_run_completed": None,
            "last_run_duration_sec": None,
            "last_report": None,
            "total_alerts_sent": 0,
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self):
        """Launch the background polling loop."""
        if self._task and not self._task.done():
            logger.warning("Poller already started")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            f"Starting polling service (interval={self.settings.poll_interval_ms}ms, "
            f"window={self.settings.recency_hours}h)"
        )

    async def stop(self):
        """Cancel the loop and any cycle in flight."""
        for task in (self._task, self._cycle_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        logger.info("Polling service stopped")

    async def run_forever(self):
        """Start the loop and wait until it is cancelled."""
        await self.start()
        if self._task:
            await self._task

    def get_status(self) -> dict:
        """Return current poller status."""
        return {**self._status, "is_running": self._cycle_running}

    def is_cycle_running(self) -> bool:
        return self._cycle_running

    def tick(self) -> Optional[asyncio.Task]:
        """Start a cycle unless one is still in flight.

        Returns:
            The task running the new cycle, or None if skipped
        """
        if self._cycle_running:
            logger.warning("Previous polling cycle still running, skipping this tick")
            return None
        self._cycle_task = asyncio.create_task(self._run_cycle_safely())
        return self._cycle_task

    async def _loop(self):
        """Main loop: tick immediately, then on every interval."""
        interval = self.settings.poll_interval_ms / 1000
        while True:
            self.tick()
            await asyncio.sleep(interval)

    async def _run_cycle_safely(self) -> Optional[CycleReport]:
        try:
            return await self.run_cycle()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Polling cycle failed unexpectedly")
            return None

    # =========================================================================
    # Cycle
    # =========================================================================

    async def run_cycle(self) -> CycleReport:
        """Execute one polling cycle.

        A failure to fetch listings or users aborts only this cycle. Errors
        for one user or one pair are logged and counted, and never stop the
        remaining work.

        Returns:
            CycleReport with counters for the cycle
        """
        if self._cycle_running:
            logger.warning("Polling cycle already in flight")
            return CycleReport(skipped=True, finished_at=_now())

        self._cycle_running = True
        report = CycleReport()
        self._status["last_run_started"] = report.started_at.isoformat()

        try:
            logger.info("Polling for new listings...")
            try:
                listings = await self.listings.recent_listings(self.settings.recency_hours)
                users = await self.users.active_users()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                report.aborted = True
                report.error = str(e)
                logger.error(f"Polling cycle aborted: {e}")
                return report

            users = [u for u in users if u.is_alertable]
            report.listings_seen = len(listings)
            logger.info(f"Found {len(listings)} listings and {len(users)} active users")

            semaphore = asyncio.Semaphore(self.settings.max_concurrent_users)
            await asyncio.gather(
                *(self._process_user(user, listings, report, semaphore) for user in users)
            )

            logger.info(
                f"Cycle complete: {report.alerts_sent} alerts sent, "
                f"{report.duplicates_skipped} already sent, {report.failures} failures"
            )
            return report

        except asyncio.CancelledError:
            raise
        except Exception as e:
            report.aborted = True
            report.error = str(e)
            raise

        finally:
            report.finished_at = _now()
            self._cycle_running = False
            if not report.aborted:
                self._status["cycles_completed"] += 1
            self._status.update({
                "last_run_completed": report.finished_at.isoformat(),
                "last_run_duration_sec": report.duration_sec,
                "last_report": asdict(report),
                "total_alerts_sent": self._status["total_alerts_sent"] + report.alerts_sent,
            })

    async def _process_user(
        self,
        user: User,
        listings: list[ListingRecord],
        report: CycleReport,
        semaphore: asyncio.Semaphore,
    ) -> None:
        """Score every listing for one user."""
        async with semaphore:
            try:
                criteria = await self.users.criteria_for(user.user_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                report.failures += 1
                logger.error(f"Error fetching criteria for user {user.user_id}: {e}")
                return

            if criteria is None:
                logger.debug(f"User {user.user_id} has no criteria, skipping")
                return

            report.users_checked += 1
            for listing in listings:
                await self._process_pair(user.user_id, criteria, listing, report)

    async def _process_pair(
        self,
        user_id: int,
        criteria: UserCriteria,
        listing: ListingRecord,
        report: CycleReport,
    ) -> None:
        """Score one pair and dispatch an alert on match."""
        claimed = False
        try:
            if await self.dedup.exists(user_id, listing.id):
                report.duplicates_skipped += 1
                return

            result = self.engine.score(listing, criteria)
            report.pairs_scored += 1
            if not result.is_match:
                return

            record = SentAlertRecord.from_result(user_id, listing.id, result)
            if not await self.dedup.record_alert(record):
                # Another cycle or process claimed the pair first
                report.duplicates_skipped += 1
                logger.debug(f"Listing {listing.id} already alerted to user {user_id}")
                return
            claimed = True

            message = render_alert_message(
                listing, result, self.settings.premium_score_threshold
            )
            delivered = await self.channel.deliver(
                user_id, message, media_url=_media_url(listing)
            )

            if delivered:
                report.alerts_sent += 1
                logger.info(f"Alert sent to user {user_id} for listing {listing.id}")
            else:
                report.failures += 1
                await self._mark_undelivered(user_id, listing.id)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            report.failures += 1
            logger.error(f"Failed to process listing {listing.id} for user {user_id}: {e}")
            if claimed:
                await self._mark_undelivered(user_id, listing.id)

    async def _mark_undelivered(self, user_id: int, listing_id: str) -> None:
        """Flag a claimed pair whose alert never reached the user."""
        logger.warning(
            f"Alert for listing {listing_id} not delivered to user {user_id}; "
            f"pair stays claimed and will not be retried"
        )
        try:
            await self.dedup.set_user_action(user_id, listing_id, USER_ACTION_DELIVERY_FAILED)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Could not flag undelivered alert {listing_id} for user {user_id}: {e}")
