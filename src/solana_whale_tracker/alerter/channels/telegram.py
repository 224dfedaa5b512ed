"""Telegram Bot API channel."""

from __future__ import annotations

import httpx

from solana_whale_tracker.alerter.channels.base import BaseChannel
from solana_whale_tracker.alerter.models import FormattedAlert
from solana_whale_tracker.exceptions import ChannelDeliveryFailure

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramChannel(BaseChannel):
    """Sends MarkdownV2 alerts to a Telegram chat."""

    name = "telegram"

    def __init__(
        self,
        bot_token: str | None,
        chat_id: str | None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(http_client)
        self._bot_token = bot_token
        self._chat_id = chat_id

    @property
    def is_configured(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def _deliver(self, alert: FormattedAlert) -> None:
        client = await self._get_http()
        response = await client.post(
            TELEGRAM_API_URL.format(token=self._bot_token),
            json={
                "chat_id": self._chat_id,
                "text": alert.telegram_markdown,
                "parse_mode": "MarkdownV2",
                "disable_web_page_preview": True,
            },
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 300 or not body.get("ok"):
            description = body.get("description") or f"HTTP {response.status_code}"
            raise ChannelDeliveryFailure(self.name, str(description))
