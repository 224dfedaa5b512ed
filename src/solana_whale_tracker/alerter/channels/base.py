"""Shared plumbing for notification channels."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from solana_whale_tracker.alerter.models import FormattedAlert
from solana_whale_tracker.exceptions import ChannelDeliveryFailure

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0


@runtime_checkable
class NotificationChannel(Protocol):
    """Anything that can deliver a formatted alert."""

    name: str

    @property
    def is_configured(self) -> bool: ...

    async def send(self, alert: FormattedAlert) -> bool: ...


class BaseChannel:
    """Base class handling configuration checks and failure logging.

    Subclasses implement ``_deliver`` and raise ``ChannelDeliveryFailure``
    when the remote side rejects the message. ``send`` never raises.
    """

    name = "base"

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._http = http_client

    @property
    def is_configured(self) -> bool:
        return False

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT_SECONDS)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def send(self, alert: FormattedAlert) -> bool:
        """Deliver ``alert``; returns False instead of raising on failure."""
        if not self.is_configured:
            logger.debug("%s channel not configured, skipping", self.name)
            return False
        try:
            await self._deliver(alert)
        except ChannelDeliveryFailure as e:
            logger.warning("%s delivery failed: %s", self.name, e.reason)
            return False
        except httpx.HTTPError as e:
            logger.warning("%s delivery failed: %s", self.name, e)
            return False
        return True

    async def _deliver(self, alert: FormattedAlert) -> None:
        raise NotImplementedError
