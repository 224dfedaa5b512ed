"""Slack ``chat.postMessage`` channel."""

from __future__ import annotations

import httpx

from solana_whale_tracker.alerter.channels.base import BaseChannel
from solana_whale_tracker.alerter.models import FormattedAlert
from solana_whale_tracker.exceptions import ChannelDeliveryFailure

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class SlackChannel(BaseChannel):
    """Posts alerts to a Slack channel using a bot token."""

    name = "slack"

    def __init__(
        self,
        bot_token: str | None,
        channel: str = "#whale-alerts",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(http_client)
        self._bot_token = bot_token
        self._channel = channel

    @property
    def is_configured(self) -> bool:
        return bool(self._bot_token)

    async def _deliver(self, alert: FormattedAlert) -> None:
        client = await self._get_http()
        response = await client.post(
            SLACK_POST_MESSAGE_URL,
            headers={"Authorization": f"Bearer {self._bot_token}"},
            json={
                "channel": self._channel,
                "text": f"{alert.title}\n{alert.body}",
                "blocks": alert.slack_blocks,
            },
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        # Slack reports API errors with HTTP 200 and ok=false
        if response.status_code >= 300 or not body.get("ok"):
            raise ChannelDeliveryFailure(self.name, str(body.get("error") or f"HTTP {response.status_code}"))
