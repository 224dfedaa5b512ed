"""Ingestor module - Solana data adapter, discovery and transaction monitoring."""

from solana_whale_tracker.ingestor.classifier import classify_token_balance_changes
from solana_whale_tracker.ingestor.discovery import DiscoveryResult, WhaleDiscovery
from solana_whale_tracker.ingestor.models import (
    ClassifiedTransfer,
    HolderAccount,
    ParsedTransaction,
    TokenBalance,
)
from solana_whale_tracker.ingestor.monitor import MonitorResult, TransactionMonitor
from solana_whale_tracker.ingestor.solana_client import RateLimiter, SolanaClient

__all__ = [
    "ClassifiedTransfer",
    "DiscoveryResult",
    "HolderAccount",
    "MonitorResult",
    "ParsedTransaction",
    "RateLimiter",
    "SolanaClient",
    "TokenBalance",
    "TransactionMonitor",
    "WhaleDiscovery",
    "classify_token_balance_changes",
]
