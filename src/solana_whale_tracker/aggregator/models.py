"""Data models for the snapshot aggregator."""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from solana_whale_tracker.storage.repos import TransactionDTO, WhaleDTO

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def distribution_score(top_balance: Decimal, total_balance: Decimal) -> Decimal:
    """How evenly supply is spread across whales, 0 (one holder) to 100.

    Computed as ``100 - top / total * 100``, clamped to [0, 100] and rounded
    to two decimals. Zero when there is no supply.
    """
    if total_balance <= 0:
        return _ZERO
    score = _HUNDRED - (top_balance / total_balance) * _HUNDRED
    score = min(_HUNDRED, max(_ZERO, score))
    return score.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MarketSnapshot:
    """Point-in-time market view used for one alert evaluation cycle."""

    whales: tuple[WhaleDTO, ...]
    transactions: tuple[TransactionDTO, ...]
    price: Decimal
    volume_24h: Decimal
    avg_transaction_size: Decimal
    whale_count: int
    as_of: datetime
    buy_count: int = 0
    sell_count: int = 0
    distribution_score: Decimal = _ZERO

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation stored with alert triggers."""
        return {
            "as_of": self.as_of.isoformat(),
            "price": str(self.price),
            "volume_24h": str(self.volume_24h),
            "avg_transaction_size": str(self.avg_transaction_size),
            "whale_count": self.whale_count,
            "buy_count": self.buy_count,
            "sell_count": self.sell_count,
            "distribution_score": str(self.distribution_score),
            "whales": [w.to_dict() for w in self.whales],
            "transactions": [t.to_dict() for t in self.transactions],
        }


@dataclass(frozen=True)
class WhaleMetrics:
    """Aggregate whale holdings metrics."""

    total_whales: int
    total_balance: Decimal
    avg_balance: Decimal
    top_whale_balance: Decimal
    distribution_score: Decimal
    price: Decimal
    as_of: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_whales": self.total_whales,
            "total_balance": str(self.total_balance),
            "avg_balance": str(self.avg_balance),
            "top_whale_balance": str(self.top_whale_balance),
            "distribution_score": str(self.distribution_score),
            "price": str(self.price),
            "as_of": self.as_of.isoformat(),
        }


@dataclass(frozen=True)
class ActivityReport:
    """Transaction activity over a named timeframe."""

    timeframe: str
    since: datetime
    total_transactions: int = 0
    total_volume_usd: Decimal = _ZERO
    buy_transactions: int = 0
    sell_transactions: int = 0
    avg_transaction_size: Decimal = _ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "timeframe": self.timeframe,
            "since": self.since.isoformat(),
            "total_transactions": self.total_transactions,
            "total_volume_usd": str(self.total_volume_usd),
            "buy_transactions": self.buy_transactions,
            "sell_transactions": self.sell_transactions,
            "avg_transaction_size": str(self.avg_transaction_size),
        }
