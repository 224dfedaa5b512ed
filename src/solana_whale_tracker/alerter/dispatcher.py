"""Notification dispatcher.

Fans a formatted alert out to the channels named in an alert's actions.
Channels are isolated from each other: one failing, hanging or unknown
channel never prevents delivery to the rest.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from solana_whale_tracker.alerter.channels.base import NotificationChannel
from solana_whale_tracker.alerter.models import FormattedAlert

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_TIMEOUT_SECONDS = 10.0


@dataclass
class DispatchResult:
    """Per-channel outcome of a dispatch."""

    results: dict[str, bool] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return sum(1 for ok in self.results.values() if ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for ok in self.results.values() if not ok)

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0


class NotificationDispatcher:
    """Routes alerts to registered channels by name.

    Example:
        ```python
        dispatcher = NotificationDispatcher([DiscordChannel(url)])
        result = await dispatcher.dispatch(["discord", "email"], formatted)
        if not result.all_succeeded:
            ...
        ```
    """

    def __init__(
        self,
        channels: Iterable[NotificationChannel],
        *,
        channel_timeout_seconds: float = DEFAULT_CHANNEL_TIMEOUT_SECONDS,
    ) -> None:
        self._channels: dict[str, NotificationChannel] = {c.name: c for c in channels}
        self._timeout = channel_timeout_seconds

    @property
    def channel_names(self) -> list[str]:
        return sorted(self._channels)

    def configured_channels(self) -> list[str]:
        return sorted(name for name, c in self._channels.items() if c.is_configured)

    async def send(self, channel_name: str, alert: FormattedAlert) -> bool:
        """Deliver to one channel. Never raises.

        Returns:
            True only if the channel reported success within the timeout.
        """
        channel = self._channels.get(channel_name)
        if channel is None:
            logger.warning("Unknown notification channel: %s", channel_name)
            return False
        try:
            return bool(await asyncio.wait_for(channel.send(alert), timeout=self._timeout))
        except TimeoutError:
            logger.warning("%s delivery timed out after %.1fs", channel_name, self._timeout)
            return False
        except Exception as e:
            logger.warning("%s delivery raised: %s", channel_name, e)
            return False

    async def dispatch(self, actions: Sequence[str], alert: FormattedAlert) -> DispatchResult:
        """Deliver to every named channel concurrently."""
        names = list(dict.fromkeys(actions))
        outcomes = await asyncio.gather(*(self.send(name, alert) for name in names))
        result = DispatchResult(results=dict(zip(names, outcomes, strict=True)))
        if names and not result.all_succeeded:
            logger.warning(
                "Alert delivery partially failed: %d/%d channels succeeded",
                result.success_count,
                len(names),
            )
        return result

    async def aclose(self) -> None:
        for channel in self._channels.values():
            close = getattr(channel, "aclose", None)
            if close is not None:
                await close()
