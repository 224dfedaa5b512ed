"""Solana Whale Tracker - whale discovery, transaction monitoring and alerting."""

__version__ = "0.1.0"
