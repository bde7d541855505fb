"""Tests for alert rendering and notification channels."""

import asyncio
import io
import json
from datetime import date

import httpx
from rich.console import Console

from flatmatch.alerts import ConsoleNotifier, TelegramNotifier, render_alert_message
from flatmatch.config import Settings
from flatmatch.models import ScoreResult

from conftest import make_listing


class TestRenderAlertMessage:
    """Test the alert text."""

    def test_full_listing(self, engine, plainpalais_listing, carouge_criteria):
        result = engine.score(plainpalais_listing, carouge_criteria)
        message = render_alert_message(plainpalais_listing, result)
        lines = message.splitlines()

        assert lines[0] == "🔔 New matching listing"
        assert "🏠 Appartement - 3 rooms - 70m²" in lines
        assert "📍 Plainpalais, 1205 Genève" in lines
        assert "💰 2200 CHF/month" in lines
        assert "✅ Bonus: Top floor, Balcony/Terrace" in lines
        assert lines[-1] == "👉 https://example.com/ad-1"

    def test_premium_header(self, plainpalais_listing):
        message = render_alert_message(plainpalais_listing, ScoreResult(total=125), premium_threshold=120)
        assert message.startswith("🌟 PERFECT MATCH 🌟")

    def test_sparse_listing(self):
        listing = make_listing("x")
        message = render_alert_message(listing, ScoreResult(total=100))

        assert "🏠 Dwelling - rooms not stated" in message
        assert "📍 Genève" in message
        assert "💰 Price on request" in message
        assert "👉" not in message

    def test_badges_urgency_and_availability(self):
        listing = make_listing(
            "x", rooms=1, urgent=True, available_from=date(2026, 11, 1), rent_total=900
        )
        result = ScoreResult(total=100, badges=["💎 Exceptional price", "🚨 URGENT"])

        message = render_alert_message(listing, result)

        assert "1 room -" not in message
        assert "🏠 Dwelling - 1 room" in message
        assert "💎 Exceptional price 🚨 URGENT" in message
        assert "📅 Available from 01.11.2026" in message
        assert "⚡ URGENT" in message


def _telegram(handler, token="test-token") -> TelegramNotifier:
    settings = Settings(telegram_api_base="https://tg.test", _env_file=None)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramNotifier(token=token, settings=settings, client=client)


class TestTelegramNotifier:
    """Test Bot API delivery against a mock transport."""

    def test_send_message(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": {}})

        async def scenario():
            async with _telegram(handler) as notifier:
                return await notifier.deliver(42, "hello")

        assert asyncio.run(scenario()) is True
        assert len(requests) == 1
        assert str(requests[0].url) == "https://tg.test/bottest-token/sendMessage"
        assert json.loads(requests[0].content) == {"chat_id": 42, "text": "hello"}

    def test_send_photo_with_caption(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        async def scenario():
            async with _telegram(handler) as notifier:
                return await notifier.deliver(42, "hello", media_url="https://cdn.test/a.jpg")

        assert asyncio.run(scenario()) is True
        assert requests[0].url.path.endswith("/sendPhoto")
        assert json.loads(requests[0].content) == {
            "chat_id": 42,
            "photo": "https://cdn.test/a.jpg",
            "caption": "hello",
        }

    def test_http_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"ok": False, "description": "Forbidden: bot was blocked"})

        async def scenario():
            async with _telegram(handler) as notifier:
                return await notifier.deliver(42, "hello")

        assert asyncio.run(scenario()) is False

    def test_api_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": False, "description": "chat not found"})

        async def scenario():
            async with _telegram(handler) as notifier:
                return await notifier.deliver(42, "hello")

        assert asyncio.run(scenario()) is False

    def test_non_json_success_returns_false(self):
        """A gateway page served with status 200 is a failed delivery."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>502 Bad Gateway</html>")

        async def scenario():
            async with _telegram(handler) as notifier:
                return await notifier.deliver(42, "hello")

        assert asyncio.run(scenario()) is False

    def test_non_object_json_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["ok"])

        async def scenario():
            async with _telegram(handler) as notifier:
                return await notifier.deliver(42, "hello")

        assert asyncio.run(scenario()) is False

    def test_transport_error_returns_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            async with _telegram(handler) as notifier:
                return await notifier.deliver(42, "hello")

        assert asyncio.run(scenario()) is False

    def test_without_token_nothing_is_sent(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"ok": True})

        settings = Settings(telegram_bot_token=None, _env_file=None)
        notifier = TelegramNotifier(
            settings=settings,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        async def scenario():
            async with notifier:
                return await notifier.deliver(42, "hello")

        assert not notifier.is_available()
        assert asyncio.run(scenario()) is False
        assert calls == []


class TestConsoleNotifier:
    """Test console delivery."""

    def test_prints_and_records(self):
        buffer = io.StringIO()
        notifier = ConsoleNotifier(output=Console(file=buffer, width=100))

        delivered = asyncio.run(notifier.deliver(7, "📍 Carouge"))

        assert delivered
        assert notifier.delivered == [(7, "📍 Carouge")]
        assert "Alert for 7" in buffer.getvalue()
