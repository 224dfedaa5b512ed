"""Discord webhook channel."""

from __future__ import annotations

import httpx

from solana_whale_tracker.alerter.channels.base import BaseChannel
from solana_whale_tracker.alerter.models import FormattedAlert
from solana_whale_tracker.exceptions import ChannelDeliveryFailure


class DiscordChannel(BaseChannel):
    """Posts alerts as embeds to a Discord webhook."""

    name = "discord"

    def __init__(self, webhook_url: str | None, http_client: httpx.AsyncClient | None = None) -> None:
        super().__init__(http_client)
        self._webhook_url = webhook_url

    @property
    def is_configured(self) -> bool:
        return bool(self._webhook_url)

    async def _deliver(self, alert: FormattedAlert) -> None:
        assert self._webhook_url is not None
        client = await self._get_http()
        response = await client.post(
            self._webhook_url,
            json={"content": alert.title, "embeds": [alert.discord_embed]},
        )
        if response.status_code >= 300:
            raise ChannelDeliveryFailure(self.name, f"HTTP {response.status_code}: {response.text[:200]}")
