"""Fixtures shared by the alerter tests."""

import asyncio
from collections.abc import Callable

import pytest

from solana_whale_tracker.alerter.models import FormattedAlert


class FakeChannel:
    """In-memory channel recording what it was asked to send."""

    def __init__(
        self,
        name: str,
        *,
        result: bool = True,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self._result = result
        self._delay = delay
        self._error = error
        self.sent: list[FormattedAlert] = []

    @property
    def is_configured(self) -> bool:
        return True

    async def send(self, alert: FormattedAlert) -> bool:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error:
            raise self._error
        self.sent.append(alert)
        return self._result


@pytest.fixture
def channel_factory() -> Callable[..., FakeChannel]:
    """Build in-memory notification channels."""
    return FakeChannel
