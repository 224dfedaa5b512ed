"""Tests for notification channels."""

import json
import smtplib
from unittest.mock import MagicMock

import httpx
import pytest

from solana_whale_tracker.alerter.channels import email as email_module
from solana_whale_tracker.alerter.channels import (
    DiscordChannel,
    EmailChannel,
    SlackChannel,
    SmsChannel,
    TelegramChannel,
)
from solana_whale_tracker.alerter.models import FormattedAlert


@pytest.fixture
def alert() -> FormattedAlert:
    return FormattedAlert(
        title="🐋 Whale Watch - Whale Alert",
        body="📈 Volume spike detected! 24h volume: $300,000.00",
        discord_embed={"title": "🐋 Whale Watch - Whale Alert", "color": 0xFF6B35},
        telegram_markdown="🐋 *Whale Watch*",
        slack_blocks=[{"type": "section", "text": {"type": "mrkdwn", "text": "body"}}],
        plain_text="Whale Watch\n\nVolume spike detected!",
    )


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestDiscordChannel:
    """Tests for DiscordChannel."""

    @pytest.mark.asyncio
    async def test_send_success(self, alert: FormattedAlert) -> None:
        payloads: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            payloads.append(json.loads(request.content))
            return httpx.Response(204)

        channel = DiscordChannel("https://discord.test/webhook", http_client=_http(handler))

        assert await channel.send(alert) is True
        assert payloads[0]["embeds"] == [alert.discord_embed]

    @pytest.mark.asyncio
    async def test_send_failure_returns_false(self, alert: FormattedAlert) -> None:
        channel = DiscordChannel(
            "https://discord.test/webhook",
            http_client=_http(lambda request: httpx.Response(500, text="oops")),
        )
        assert await channel.send(alert) is False

    @pytest.mark.asyncio
    async def test_unconfigured_does_not_send(self, alert: FormattedAlert) -> None:
        handler = MagicMock(return_value=httpx.Response(204))
        channel = DiscordChannel(None, http_client=_http(handler))

        assert channel.is_configured is False
        assert await channel.send(alert) is False
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_transport_error_returns_false(self, alert: FormattedAlert) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        channel = DiscordChannel("https://discord.test/webhook", http_client=_http(handler))
        assert await channel.send(alert) is False


class TestTelegramChannel:
    """Tests for TelegramChannel."""

    @pytest.mark.asyncio
    async def test_send_success(self, alert: FormattedAlert) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": {}})

        channel = TelegramChannel("123:abc", "-100200", http_client=_http(handler))

        assert await channel.send(alert) is True
        assert requests[0].url.path == "/bot123:abc/sendMessage"
        body = json.loads(requests[0].content)
        assert body["parse_mode"] == "MarkdownV2"
        assert body["chat_id"] == "-100200"

    @pytest.mark.asyncio
    async def test_api_error_returns_false(self, alert: FormattedAlert) -> None:
        channel = TelegramChannel(
            "123:abc",
            "-100200",
            http_client=_http(
                lambda request: httpx.Response(400, json={"ok": False, "description": "can't parse entities"})
            ),
        )
        assert await channel.send(alert) is False


class TestSlackChannel:
    """Tests for SlackChannel."""

    @pytest.mark.asyncio
    async def test_send_success(self, alert: FormattedAlert) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        channel = SlackChannel("xoxb-token", "#alerts", http_client=_http(handler))

        assert await channel.send(alert) is True
        assert requests[0].headers["Authorization"] == "Bearer xoxb-token"
        assert json.loads(requests[0].content)["channel"] == "#alerts"

    @pytest.mark.asyncio
    async def test_ok_false_returns_false(self, alert: FormattedAlert) -> None:
        channel = SlackChannel(
            "xoxb-token",
            http_client=_http(lambda request: httpx.Response(200, json={"ok": False, "error": "channel_not_found"})),
        )
        assert await channel.send(alert) is False


class TestSmsChannel:
    """Tests for SmsChannel."""

    @pytest.mark.asyncio
    async def test_sends_to_every_number(self, alert: FormattedAlert) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM1"})

        channel = SmsChannel(
            account_sid="AC123",
            auth_token="secret",
            from_number="+15550000000",
            to_numbers=["+15551111111", "+15552222222"],
            http_client=_http(handler),
        )

        assert await channel.send(alert) is True
        assert len(requests) == 2
        assert requests[0].url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        assert requests[0].headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_partial_failure_returns_false(self, alert: FormattedAlert) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if b"%2B15552222222" in request.content:
                return httpx.Response(400, json={"message": "invalid number"})
            return httpx.Response(201, json={"sid": "SM1"})

        channel = SmsChannel(
            account_sid="AC123",
            auth_token="secret",
            from_number="+15550000000",
            to_numbers=["+15551111111", "+15552222222"],
            http_client=_http(handler),
        )

        assert await channel.send(alert) is False


class TestEmailChannel:
    """Tests for EmailChannel."""

    def _channel(self) -> EmailChannel:
        return EmailChannel(
            host="smtp.test",
            port=587,
            user="alerts",
            password="secret",
            sender="alerts@whales.test",
            recipients=["ops@whales.test"],
        )

    @pytest.mark.asyncio
    async def test_send_success(self, alert: FormattedAlert, monkeypatch: pytest.MonkeyPatch) -> None:
        smtp_cls = MagicMock()
        monkeypatch.setattr(email_module.smtplib, "SMTP", smtp_cls)

        assert await self._channel().send(alert) is True

        server = smtp_cls.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("alerts", "secret")
        message = server.send_message.call_args.args[0]
        assert message["Subject"] == alert.title
        assert message["To"] == "ops@whales.test"

    @pytest.mark.asyncio
    async def test_smtp_error_returns_false(self, alert: FormattedAlert, monkeypatch: pytest.MonkeyPatch) -> None:
        smtp_cls = MagicMock(side_effect=smtplib.SMTPConnectError(421, "unavailable"))
        monkeypatch.setattr(email_module.smtplib, "SMTP", smtp_cls)

        assert await self._channel().send(alert) is False

    def test_not_configured_without_recipients(self) -> None:
        channel = EmailChannel(host="smtp.test", sender="alerts@whales.test", recipients=[])
        assert channel.is_configured is False
