"""Time-bounded cache for the tracked token's price."""

import asyncio
import logging
import time
from collections.abc import Callable
from decimal import Decimal
from typing import TYPE_CHECKING

from solana_whale_tracker.exceptions import SourceUnavailable

if TYPE_CHECKING:
    from solana_whale_tracker.ingestor.solana_client import SolanaClient

logger = logging.getLogger(__name__)

DEFAULT_PRICE_TTL_SECONDS = 60.0


class PriceCache:
    """Caches the current price for ``ttl_seconds``.

    Refreshes are serialised with a lock so concurrent callers share a single
    fetch. When the price source is unavailable the last known price is
    served, or zero if none has been fetched yet.
    """

    def __init__(
        self,
        client: "SolanaClient",
        *,
        ttl_seconds: float = DEFAULT_PRICE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._price: Decimal | None = None
        self._fetched_at: float | None = None

    def _is_fresh(self) -> bool:
        return self._fetched_at is not None and self._clock() - self._fetched_at < self._ttl

    @property
    def last_price(self) -> Decimal | None:
        return self._price

    async def get_price(self) -> Decimal:
        """Return the cached price, refreshing it when expired. Never raises."""
        if self._is_fresh():
            assert self._price is not None
            return self._price

        async with self._lock:
            if self._is_fresh():
                assert self._price is not None
                return self._price
            try:
                self._price = await self._client.get_current_price()
                self._fetched_at = self._clock()
            except SourceUnavailable as e:
                logger.warning("Price refresh failed, serving last known price: %s", e)
            return self._price if self._price is not None else Decimal("0")

    def invalidate(self) -> None:
        self._fetched_at = None
