"""Whale transaction monitor loop.

Polls the largest active whales for recent signatures, classifies the
unseen ones and records significant transfers exactly once.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from solana_whale_tracker.exceptions import ClassificationSkip, PersistenceConflict, SourceUnavailable
from solana_whale_tracker.ingestor.classifier import classify_token_balance_changes
from solana_whale_tracker.ingestor.models import ClassifiedTransfer, ParsedTransaction
from solana_whale_tracker.realtime.bus import NEW_TRANSACTION, BroadcastBus
from solana_whale_tracker.storage.repos import (
    TransactionDTO,
    TransactionRepository,
    WhaleRepository,
)

if TYPE_CHECKING:
    from solana_whale_tracker.aggregator.price_cache import PriceCache
    from solana_whale_tracker.ingestor.solana_client import SolanaClient
    from solana_whale_tracker.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_TOP_WHALES = 20
DEFAULT_SIGNATURES_LIMIT = 5
DEFAULT_MIN_TRANSFER_AMOUNT = Decimal("10000")
DEFAULT_SKIPPED_CACHE_SIZE = 4096


@dataclass(frozen=True)
class MonitorResult:
    """Outcome of one monitor cycle."""

    whales_checked: int = 0
    new_transactions: int = 0
    failed_whales: int = 0


def select_transfer(
    transfers: list[ClassifiedTransfer],
    whale_address: str,
    min_amount: Decimal,
) -> ClassifiedTransfer | None:
    """Pick the transfer to record for a whale's transaction.

    Transfers on the whale's own token accounts are preferred; otherwise any
    account change in the transaction is considered. Only amounts strictly
    above ``min_amount`` qualify, and the largest one wins since the
    signature is the record key.
    """
    own = [t for t in transfers if t.counterparty == whale_address]
    candidates = [t for t in (own or transfers) if t.amount > min_amount]
    if not candidates:
        return None
    return max(candidates, key=lambda t: t.amount)


class TransactionMonitor:
    """Records significant whale transactions."""

    def __init__(
        self,
        db: "DatabaseManager",
        client: "SolanaClient",
        price_cache: "PriceCache",
        *,
        token_mint: str,
        bus: BroadcastBus | None = None,
        top_whales: int = DEFAULT_TOP_WHALES,
        signatures_limit: int = DEFAULT_SIGNATURES_LIMIT,
        min_transfer_amount: Decimal = DEFAULT_MIN_TRANSFER_AMOUNT,
        skipped_cache_size: int = DEFAULT_SKIPPED_CACHE_SIZE,
    ) -> None:
        self._db = db
        self._client = client
        self._price_cache = price_cache
        self._token_mint = token_mint
        self._bus = bus
        self._top_whales = top_whales
        self._signatures_limit = signatures_limit
        self._min_amount = min_transfer_amount
        # Signatures classified but not stored (small or malformed), oldest first
        self._skipped: OrderedDict[str, None] = OrderedDict()
        self._skipped_cache_size = max(0, skipped_cache_size)

    async def run_cycle(self) -> MonitorResult:
        """Check the top whales once. Per-whale failures are isolated."""
        async with self._db.get_async_session() as session:
            whales = await WhaleRepository(session).list_top_active(self._top_whales)

        new_transactions = 0
        failed = 0
        for whale in whales:
            try:
                new_transactions += await self.process_whale(whale.address)
            except SourceUnavailable as e:
                failed += 1
                logger.warning("Skipping whale %s this cycle: %s", whale.address, e)
            except Exception as e:
                failed += 1
                logger.warning("Error monitoring whale %s: %s", whale.address, e)

        if new_transactions:
            logger.info("Recorded %d new whale transactions", new_transactions)
        return MonitorResult(
            whales_checked=len(whales),
            new_transactions=new_transactions,
            failed_whales=failed,
        )

    async def process_whale(self, address: str) -> int:
        """Record new significant transactions for one whale.

        Returns:
            Number of transactions written.

        Raises:
            SourceUnavailable: If the signature list cannot be fetched.
        """
        signatures = await self._client.list_recent_signatures(address, self._signatures_limit)
        if not signatures:
            return 0

        async with self._db.get_async_session() as session:
            known = await TransactionRepository(session).existing_signatures(signatures)

        written = 0
        for signature in signatures:
            if signature in known or signature in self._skipped:
                continue
            try:
                tx = await self._client.get_transaction(signature)
                if tx is None:
                    continue
                recorded = await self._record(address, tx)
            except SourceUnavailable as e:
                logger.debug("Transaction %s unavailable: %s", signature, e)
                continue
            except ClassificationSkip as e:
                logger.debug("Skipping malformed transaction %s: %s", signature, e)
                self._remember_skipped(signature)
                continue
            except Exception as e:
                logger.warning("Error processing transaction %s for %s: %s", signature, address, e)
                continue
            if recorded:
                written += 1
            else:
                self._remember_skipped(signature)
        return written

    def _remember_skipped(self, signature: str) -> None:
        if self._skipped_cache_size == 0:
            return
        self._skipped[signature] = None
        self._skipped.move_to_end(signature)
        while len(self._skipped) > self._skipped_cache_size:
            self._skipped.popitem(last=False)

    async def _record(self, address: str, tx: ParsedTransaction) -> bool:
        transfers = classify_token_balance_changes(
            tx.pre_token_balances,
            tx.post_token_balances,
            self._token_mint,
        )
        transfer = select_transfer(transfers, address, self._min_amount)
        if transfer is None:
            return False

        price = await self._price_cache.get_price()
        dto = TransactionDTO(
            signature=tx.signature,
            whale_address=address,
            type=transfer.type,
            amount=transfer.amount,
            price=price,
            value_usd=(transfer.amount * price).quantize(Decimal("0.01")),
            block_time=tx.block_time,
            slot=tx.slot,
            counterparty=transfer.counterparty,
            metadata=tx.metadata(),
        )

        try:
            async with self._db.get_async_session() as session:
                await TransactionRepository(session).insert(dto)
                await WhaleRepository(session).record_activity(address, at=tx.block_time)
        except PersistenceConflict:
            logger.debug("Transaction %s already recorded", tx.signature)
            return False

        logger.info(
            "Whale %s %s %s tokens (%s)",
            address[:8],
            transfer.type,
            transfer.amount,
            tx.signature[:16],
        )
        if self._bus:
            await self._bus.broadcast(NEW_TRANSACTION, dto.to_dict())
        return True
