"""Alert rendering and notification channels."""

import logging
from typing import Optional

import httpx
from rich.console import Console
from rich.panel import Panel

from ..config import Settings, config as default_config
from ..models.listing import ListingRecord
from ..models.score import ScoreResult
from .sources import DeliveryError, NotificationChannel

logger = logging.getLogger(__name__)
console = Console()


def render_alert_message(
    listing: ListingRecord,
    result: ScoreResult,
    premium_threshold: int = 120,
) -> str:
    """Build the plain-text alert sent to a user.

    Args:
        listing: The matching listing
        result: Its score for the user
        premium_threshold: Score at or above which the header is premium

    Returns:
        Message text
    """
    if result.total >= premium_threshold:
        lines = ["🌟 PERFECT MATCH 🌟", ""]
    else:
        lines = ["🔔 New matching listing", ""]

    # Dwelling
    dwelling = listing.dwelling_type or "Dwelling"
    if listing.rooms is not None:
        rooms = f"{listing.rooms:g} room{'s' if listing.rooms > 1 else ''}"
    else:
        rooms = "rooms not stated"
    headline = f"🏠 {dwelling} - {rooms}"
    if listing.surface_m2:
        headline += f" - {listing.surface_m2:g}m²"
    lines.append(headline)

    # Location
    place = " ".join(p for p in (listing.postal_code, listing.city or "Genève") if p)
    if listing.neighborhood:
        place = f"{listing.neighborhood}, {place}"
    lines.append(f"📍 {place}")
    if listing.full_address:
        lines.append(f"   {listing.full_address}")

    # Price
    if listing.rent_total is not None:
        lines.append(f"💰 {listing.rent_total} CHF/month")
    else:
        lines.append("💰 Price on request")
    lines.append("")

    if result.badges:
        lines.extend([" ".join(result.badges), ""])

    if result.comfort_matches:
        lines.extend([f"✅ Bonus: {', '.join(result.comfort_matches)}", ""])

    amenities = []
    if listing.balcony:
        amenities.append("🌿 Balcony")
    if listing.terrace:
        amenities.append("🌿 Terrace")
    if listing.parking_included:
        amenities.append("🚗 Parking")
    if listing.furnished:
        amenities.append("🛋️ Furnished")
    if listing.top_floor:
        amenities.append("🔝 Top floor")
    if amenities:
        lines.extend([" • ".join(amenities), ""])

    if listing.available_from:
        lines.append(f"📅 Available from {listing.available_from.strftime('%d.%m.%Y')}")
    if listing.urgent:
        lines.append("⚡ URGENT - to be let quickly")

    if listing.url:
        lines.extend(["", f"👉 {listing.url}"])

    return "\n".join(lines).rstrip()


class TelegramNotifier(NotificationChannel):
    """Deliver alerts through the Telegram Bot API.

    Sends a photo with caption when a media URL is given, plain text
    otherwise. HTTP failures are logged and reported as False.

    Example:
        async with TelegramNotifier(token="123:abc") as notifier:
            await notifier.deliver(42, "Hello")
    """

    name = "telegram"

    def __init__(
        self,
        token: Optional[str] = None,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize notifier.

        Args:
            token: Bot token. Defaults to FLATMATCH_TELEGRAM_BOT_TOKEN.
            settings: Settings for API base URL and timeout
            client: Optional preconfigured httpx client (used in tests)
        """
        self.settings = settings or default_config
        self.token = token or self.settings.telegram_bot_token
        self._client = client

    async def __aenter__(self) -> "TelegramNotifier":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    def is_available(self) -> bool:
        return bool(self.token)

    async def _call(self, method: str, payload: dict, user_id: int) -> None:
        client = await self._get_client()
        url = f"{self.settings.telegram_api_base}/bot{self.token}/{method}"
        try:
            resp = await client.post(url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(self.name, user_id, str(e)) from e

        try:
            body = resp.json()
        except ValueError as e:
            raise DeliveryError(self.name, user_id, f"invalid response body: {e}") from e
        if not isinstance(body, dict):
            raise DeliveryError(self.name, user_id, "unexpected response body")
        if not body.get("ok", False):
            raise DeliveryError(self.name, user_id, body.get("description", "unknown error"))

    async def deliver(
        self, user_id: int, message: str, media_url: Optional[str] = None
    ) -> bool:
        if not self.is_available():
            logger.warning("Telegram token not configured, skipping delivery")
            return False

        try:
            if media_url:
                await self._call(
                    "sendPhoto",
                    {"chat_id": user_id, "photo": media_url, "caption": message},
                    user_id,
                )
            else:
                await self._call(
                    "sendMessage",
                    {"chat_id": user_id, "text": message},
                    user_id,
                )
        except DeliveryError as e:
            logger.error(f"Failed to send alert: {e}")
            return False

        logger.info(f"Alert delivered to {user_id}")
        return True


class ConsoleNotifier(NotificationChannel):
    """Print alerts to the console with Rich formatting.

    Useful for local runs and dry runs; always succeeds.
    """

    name = "console"

    def __init__(self, output: Optional[Console] = None):
        self.console = output or console
        self.delivered: list[tuple[int, str]] = []

    async def deliver(
        self, user_id: int, message: str, media_url: Optional[str] = None
    ) -> bool:
        subtitle = f"[dim]{media_url}[/dim]" if media_url else None
        self.console.print(
            Panel(message, title=f"[bold green]Alert for {user_id}[/bold green]", subtitle=subtitle)
        )
        self.delivered.append((user_id, message))
        return True
