"""Whale discovery loop.

Periodically enumerates holders of the tracked token above the whale
threshold and reconciles them into the whale registry.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from solana_whale_tracker.exceptions import SourceUnavailable
from solana_whale_tracker.ingestor.models import HolderAccount
from solana_whale_tracker.realtime.bus import (
    NEW_WHALE_DISCOVERED,
    WHALE_DISCOVERY_COMPLETE,
    BroadcastBus,
)
from solana_whale_tracker.storage.repos import WhaleRepository

if TYPE_CHECKING:
    from solana_whale_tracker.aggregator.price_cache import PriceCache
    from solana_whale_tracker.ingestor.solana_client import SolanaClient
    from solana_whale_tracker.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY_SECONDS = 0.1


@dataclass(frozen=True)
class DiscoveryResult:
    """Outcome of one discovery cycle."""

    new_whales: int = 0
    updated_whales: int = 0
    deactivated_whales: int = 0
    failed: int = 0

    @property
    def total_processed(self) -> int:
        return self.new_whales + self.updated_whales


def merge_holders(holders: list[HolderAccount]) -> list[HolderAccount]:
    """Collapse multiple token accounts of one owner into a single holder."""
    totals: dict[str, Decimal] = {}
    for holder in holders:
        totals[holder.owner] = totals.get(holder.owner, Decimal("0")) + holder.balance
    merged = [HolderAccount(owner=owner, balance=balance) for owner, balance in totals.items()]
    merged.sort(key=lambda h: h.balance, reverse=True)
    return merged


class WhaleDiscovery:
    """Reconciles on-chain holders into the whale registry.

    Each holder is written in its own session so a failure on one address
    is logged and skipped without affecting the others.
    """

    def __init__(
        self,
        db: "DatabaseManager",
        client: "SolanaClient",
        *,
        token_mint: str,
        whale_threshold: Decimal,
        bus: BroadcastBus | None = None,
        price_cache: "PriceCache | None" = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
    ) -> None:
        self._db = db
        self._client = client
        self._token_mint = token_mint
        self._threshold = whale_threshold
        self._bus = bus
        self._price_cache = price_cache
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay_seconds

    async def run_cycle(self) -> DiscoveryResult | None:
        """Run one discovery pass.

        Returns:
            The cycle result, or None if the holder list could not be
            fetched (nothing is written or deactivated in that case).
        """
        try:
            # Owners can split a balance over several token accounts, so the
            # threshold applies to merged totals rather than to each account.
            accounts = await self._client.list_holder_accounts(self._token_mint, Decimal("0"))
        except SourceUnavailable as e:
            logger.warning("Whale discovery skipped, holder list unavailable: %s", e)
            return None

        holders = [h for h in merge_holders(accounts) if h.balance >= self._threshold]
        price = await self._price_cache.get_price() if self._price_cache else None
        observed_at = datetime.now(UTC)

        new_whales = 0
        updated_whales = 0
        failed = 0
        for start in range(0, len(holders), self._batch_size):
            if start and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)
            for holder in holders[start : start + self._batch_size]:
                try:
                    async with self._db.get_async_session() as session:
                        result = await WhaleRepository(session).upsert_balance(
                            holder.owner,
                            holder.balance,
                            observed_at=observed_at,
                            price=price or None,
                        )
                except Exception as e:
                    failed += 1
                    logger.warning("Failed to upsert whale %s: %s", holder.owner, e)
                    continue

                if result.created:
                    new_whales += 1
                    if self._bus:
                        await self._bus.broadcast(NEW_WHALE_DISCOVERED, result.whale.to_dict())
                else:
                    updated_whales += 1

        deactivated = 0
        try:
            async with self._db.get_async_session() as session:
                deactivated = await WhaleRepository(session).deactivate_missing(
                    h.owner for h in holders
                )
        except Exception as e:
            logger.warning("Failed to deactivate stale whales: %s", e)

        result = DiscoveryResult(
            new_whales=new_whales,
            updated_whales=updated_whales,
            deactivated_whales=deactivated,
            failed=failed,
        )
        logger.info(
            "Whale discovery complete: %d new, %d updated, %d deactivated, %d failed",
            new_whales,
            updated_whales,
            deactivated,
            failed,
        )
        if self._bus:
            await self._bus.broadcast(
                WHALE_DISCOVERY_COMPLETE,
                {
                    "new_whales": new_whales,
                    "updated_whales": updated_whales,
                    "deactivated_whales": deactivated,
                    "total_processed": result.total_processed,
                },
            )
        return result
