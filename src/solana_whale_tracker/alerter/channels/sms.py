"""Twilio SMS channel."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from solana_whale_tracker.alerter.channels.base import BaseChannel
from solana_whale_tracker.alerter.models import FormattedAlert
from solana_whale_tracker.exceptions import ChannelDeliveryFailure

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
SMS_MAX_LENGTH = 1600


class SmsChannel(BaseChannel):
    """Texts the alert to each configured number via the Twilio REST API."""

    name = "sms"

    def __init__(
        self,
        *,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        to_numbers: Sequence[str] = (),
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(http_client)
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._to_numbers = list(to_numbers)

    @property
    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._from_number and self._to_numbers)

    async def _deliver(self, alert: FormattedAlert) -> None:
        assert self._account_sid is not None and self._auth_token is not None
        client = await self._get_http()
        text = f"{alert.title}\n{alert.body}"[:SMS_MAX_LENGTH]
        failed: list[str] = []
        for number in self._to_numbers:
            response = await client.post(
                TWILIO_MESSAGES_URL.format(sid=self._account_sid),
                auth=(self._account_sid, self._auth_token),
                data={"From": self._from_number, "To": number, "Body": text},
            )
            if response.status_code >= 300:
                logger.warning("Twilio rejected SMS to %s: HTTP %d", number, response.status_code)
                failed.append(number)
        if failed:
            raise ChannelDeliveryFailure(self.name, f"{len(failed)}/{len(self._to_numbers)} messages failed")
