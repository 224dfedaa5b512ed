"""Realtime broadcast bus for live subscribers."""

from solana_whale_tracker.realtime.bus import (
    ALERT_TRIGGERED,
    NEW_TRANSACTION,
    NEW_WHALE_DISCOVERED,
    WHALE_DISCOVERY_COMPLETE,
    WHALE_METRICS_UPDATE,
    BroadcastBus,
)

__all__ = [
    "ALERT_TRIGGERED",
    "NEW_TRANSACTION",
    "NEW_WHALE_DISCOVERED",
    "WHALE_DISCOVERY_COMPLETE",
    "WHALE_METRICS_UPDATE",
    "BroadcastBus",
]
