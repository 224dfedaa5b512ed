"""Transaction classification from token balance deltas.

A whale's buy or sell is inferred from the difference between the pre- and
post-transaction token balances of each account touching the tracked mint.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from solana_whale_tracker.exceptions import ClassificationSkip
from solana_whale_tracker.ingestor.models import ClassifiedTransfer, TokenBalance

logger = logging.getLogger(__name__)


def _parse_entries(entries: Iterable[dict[str, Any]], mint: str) -> dict[int, TokenBalance]:
    parsed: dict[int, TokenBalance] = {}
    for entry in entries:
        try:
            balance = TokenBalance.from_dict(entry)
        except ClassificationSkip as e:
            logger.debug("Skipping token balance entry: %s", e)
            continue
        if balance.mint == mint:
            parsed[balance.account_index] = balance
    return parsed


def classify_token_balance_changes(
    pre_balances: Iterable[dict[str, Any]],
    post_balances: Iterable[dict[str, Any]],
    mint: str,
    noise_floor: Decimal = Decimal("0"),
) -> list[ClassifiedTransfer]:
    """Classify per-account balance changes of ``mint`` as buys or sells.

    Post entries are matched to pre entries by account index; an account with
    no pre entry started at zero. Changes whose magnitude is at or below
    ``noise_floor`` are dropped. Malformed entries are skipped.

    Args:
        pre_balances: Raw ``preTokenBalances`` entries.
        post_balances: Raw ``postTokenBalances`` entries.
        mint: Mint address to classify.
        noise_floor: Minimum absolute change worth reporting.

    Returns:
        One transfer per account whose balance changed, in post-entry order.
    """
    pre = _parse_entries(pre_balances, mint)
    post = _parse_entries(post_balances, mint)

    transfers: list[ClassifiedTransfer] = []
    for index, after in post.items():
        before = pre.get(index)
        delta = after.ui_amount - (before.ui_amount if before else Decimal("0"))
        if abs(delta) <= noise_floor:
            continue
        transfers.append(
            ClassifiedTransfer(
                type="buy" if delta > 0 else "sell",
                amount=abs(delta),
                account_index=index,
                counterparty=after.owner,
            )
        )
    return transfers
