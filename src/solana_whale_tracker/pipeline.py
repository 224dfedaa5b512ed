"""Main pipeline orchestrator for the Solana Whale Tracker.

This module provides the Pipeline class that wires together all components
and runs the periodic discovery, monitoring, metrics and alert evaluation
tasks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis

from solana_whale_tracker.aggregator.price_cache import PriceCache
from solana_whale_tracker.aggregator.snapshot import MarketSnapshotAggregator
from solana_whale_tracker.alerter.channels.base import NotificationChannel
from solana_whale_tracker.alerter.channels.discord import DiscordChannel
from solana_whale_tracker.alerter.channels.email import EmailChannel
from solana_whale_tracker.alerter.channels.slack import SlackChannel
from solana_whale_tracker.alerter.channels.sms import SmsChannel
from solana_whale_tracker.alerter.channels.telegram import TelegramChannel
from solana_whale_tracker.alerter.dispatcher import NotificationDispatcher
from solana_whale_tracker.alerter.engine import AlertRuleEngine
from solana_whale_tracker.alerter.formatter import AlertFormatter
from solana_whale_tracker.config import Settings, get_settings
from solana_whale_tracker.exceptions import SourceUnavailable
from solana_whale_tracker.ingestor.discovery import DiscoveryResult, WhaleDiscovery
from solana_whale_tracker.ingestor.monitor import TransactionMonitor
from solana_whale_tracker.ingestor.solana_client import SolanaClient
from solana_whale_tracker.realtime.bus import WHALE_METRICS_UPDATE, BroadcastBus
from solana_whale_tracker.scheduler import PeriodicTask
from solana_whale_tracker.storage.database import DatabaseManager

if TYPE_CHECKING:
    from solana_whale_tracker.scheduler import TaskStats

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """State of the pipeline."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    whales_discovered: int = 0
    transactions_recorded: int = 0
    alerts_triggered: int = 0
    errors: int = 0
    last_error: str | None = None


class Pipeline:
    """Main pipeline orchestrator for the Solana Whale Tracker.

    Pipeline flow:
        Solana RPC -> Discovery / Monitor -> Registry -> Snapshot -> Alert Engine -> Channels

    Example:
        ```python
        from solana_whale_tracker.config import get_settings
        from solana_whale_tracker.pipeline import Pipeline

        settings = get_settings()
        pipeline = Pipeline(settings)

        await pipeline.start()
        # Pipeline runs until stop() is called
        await pipeline.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        dry_run: bool | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            dry_run: If True, skip sending alerts. Overrides settings.dry_run.
        """
        self._settings = settings or get_settings()
        self._dry_run = dry_run if dry_run is not None else self._settings.dry_run

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()

        # Components (initialized in initialize())
        self._redis: Redis | None = None
        self._db_manager: DatabaseManager | None = None
        self._solana_client: SolanaClient | None = None
        self._bus: BroadcastBus | None = None
        self._price_cache: PriceCache | None = None
        self._aggregator: MarketSnapshotAggregator | None = None
        self._discovery: WhaleDiscovery | None = None
        self._monitor: TransactionMonitor | None = None
        self._dispatcher: NotificationDispatcher | None = None
        self._engine: AlertRuleEngine | None = None

        self._tasks: list[PeriodicTask] = []
        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stats(self) -> PipelineStats:
        """Current pipeline statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if pipeline is running."""
        return self._state == PipelineState.RUNNING

    @property
    def bus(self) -> BroadcastBus | None:
        return self._bus

    def task_stats(self) -> dict[str, TaskStats]:
        return {task.name: task.stats for task in self._tasks}

    async def start(self) -> None:
        """Start the pipeline.

        Raises:
            RuntimeError: If pipeline is already running.
            Exception: If any component fails to initialize.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting pipeline...")

        try:
            await self.initialize()
            self._start_background_tasks()
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            logger.info("Pipeline started successfully")
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Stop the pipeline gracefully.

        In-flight cycles are given a grace period to finish.
        """
        if self._state == PipelineState.STOPPED:
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping pipeline...")

        if self._stop_event:
            self._stop_event.set()

        await asyncio.gather(*(task.stop() for task in self._tasks))
        self._tasks = []
        await self._cleanup()

        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    async def initialize(self) -> None:
        """Build all components without starting the periodic tasks."""
        if self._engine is not None:
            return
        settings = self._settings

        logger.debug("Initializing Redis connection...")
        self._redis = Redis.from_url(settings.redis.url)
        self._bus = BroadcastBus(self._redis, channel=settings.redis.broadcast_channel)

        logger.debug("Initializing database manager...")
        self._db_manager = DatabaseManager(settings.database.url)

        logger.debug("Initializing Solana client...")
        self._solana_client = SolanaClient(
            settings.solana.rpc_url,
            token_mint=settings.solana.token_mint,
            price_api_url=settings.solana.price_api_url,
            fallback_rpc_url=settings.solana.fallback_rpc_url,
            request_timeout_seconds=settings.solana.request_timeout_seconds,
            max_requests_per_second=settings.solana.max_requests_per_second,
        )
        self._price_cache = PriceCache(
            self._solana_client,
            ttl_seconds=settings.snapshot.price_cache_ttl_seconds,
        )
        self._aggregator = MarketSnapshotAggregator(
            self._db_manager,
            self._price_cache,
            window_hours=settings.snapshot.window_hours,
            top_whales=settings.snapshot.top_whales,
        )

        self._discovery = WhaleDiscovery(
            self._db_manager,
            self._solana_client,
            token_mint=settings.solana.token_mint,
            whale_threshold=settings.discovery.whale_threshold,
            bus=self._bus,
            price_cache=self._price_cache,
            batch_size=settings.discovery.batch_size,
            batch_delay_seconds=settings.discovery.batch_delay_seconds,
        )
        self._monitor = TransactionMonitor(
            self._db_manager,
            self._solana_client,
            self._price_cache,
            token_mint=settings.solana.token_mint,
            bus=self._bus,
            top_whales=settings.monitor.top_whales,
            signatures_limit=settings.monitor.signatures_limit,
            min_transfer_amount=settings.monitor.min_transfer_amount,
        )

        logger.debug("Initializing alerting components...")
        self._dispatcher = NotificationDispatcher(
            self._build_alert_channels(),
            channel_timeout_seconds=settings.alerts.channel_timeout_seconds,
        )
        self._engine = AlertRuleEngine(
            self._db_manager,
            self._aggregator,
            self._dispatcher,
            AlertFormatter(token_mint=settings.solana.token_mint),
            bus=self._bus,
            dry_run=self._dry_run,
        )
        logger.info("All components initialized")

    def _build_alert_channels(self) -> list[NotificationChannel]:
        """Build the channel registry; unconfigured channels are registered but inert."""
        settings = self._settings
        channels: list[NotificationChannel] = [
            DiscordChannel(
                settings.discord.webhook_url.get_secret_value() if settings.discord.webhook_url else None
            ),
            TelegramChannel(
                settings.telegram.bot_token.get_secret_value() if settings.telegram.bot_token else None,
                settings.telegram.chat_id,
            ),
            SlackChannel(
                settings.slack.bot_token.get_secret_value() if settings.slack.bot_token else None,
                settings.slack.channel,
            ),
            EmailChannel(
                host=settings.email.host,
                port=settings.email.port,
                user=settings.email.user,
                password=settings.email.password.get_secret_value() if settings.email.password else None,
                sender=settings.email.sender,
                recipients=settings.email.recipients,
                use_ssl=settings.email.use_ssl,
                timeout_seconds=settings.alerts.channel_timeout_seconds,
            ),
            SmsChannel(
                account_sid=settings.twilio.account_sid,
                auth_token=settings.twilio.auth_token.get_secret_value() if settings.twilio.auth_token else None,
                from_number=settings.twilio.from_number,
                to_numbers=settings.twilio.to_numbers,
            ),
        ]

        enabled = [c.name for c in channels if c.is_configured]
        if enabled:
            logger.info("Alert channels enabled: %s", ", ".join(enabled))
        else:
            logger.warning("No alert channels configured")
        return channels

    def _start_background_tasks(self) -> None:
        settings = self._settings
        self._tasks = [
            PeriodicTask("discovery", self.run_discovery_once, settings.discovery.interval_seconds),
            PeriodicTask("monitor", self.run_monitor_once, settings.monitor.interval_seconds),
            PeriodicTask(
                "alert-evaluation",
                self.run_evaluation_once,
                settings.alerts.evaluation_interval_seconds,
            ),
            PeriodicTask(
                "metrics",
                self.broadcast_metrics,
                settings.snapshot.metrics_interval_seconds,
                run_immediately=False,
            ),
        ]
        for task in self._tasks:
            task.start()

    def _record_error(self, e: Exception) -> None:
        self._stats.errors += 1
        self._stats.last_error = str(e)

    async def run_discovery_once(self) -> DiscoveryResult | None:
        """Run a single discovery cycle."""
        await self.initialize()
        assert self._discovery is not None
        try:
            result = await self._discovery.run_cycle()
        except Exception as e:
            self._record_error(e)
            raise
        if result is not None:
            self._stats.whales_discovered += result.new_whales
        return result

    async def run_monitor_once(self) -> int:
        """Run a single transaction monitor cycle."""
        await self.initialize()
        assert self._monitor is not None
        try:
            result = await self._monitor.run_cycle()
        except Exception as e:
            self._record_error(e)
            raise
        self._stats.transactions_recorded += result.new_transactions
        return result.new_transactions

    async def run_evaluation_once(self) -> int:
        """Run a single alert evaluation cycle."""
        await self.initialize()
        assert self._engine is not None
        try:
            fired = await self._engine.run_cycle()
        except Exception as e:
            self._record_error(e)
            raise
        self._stats.alerts_triggered += fired
        return fired

    async def broadcast_metrics(self) -> None:
        """Publish current whale metrics to live subscribers."""
        await self.initialize()
        assert self._aggregator is not None and self._bus is not None
        metrics = await self._aggregator.get_whale_metrics()
        activity = await self._aggregator.get_activity_stats("24h")
        payload: dict[str, Any] = metrics.to_dict()
        payload["activity_24h"] = activity.to_dict()
        await self._bus.broadcast(WHALE_METRICS_UPDATE, payload)

    async def health_check(self) -> dict[str, Any]:
        """Probe the RPC endpoint and report loop statistics."""
        await self.initialize()
        assert self._solana_client is not None
        try:
            slot: int | None = await self._solana_client.get_slot()
            rpc_healthy = True
        except SourceUnavailable as e:
            logger.warning("Health check: RPC unavailable: %s", e)
            slot = None
            rpc_healthy = False
        return {
            "state": self._state.value,
            "rpc_healthy": rpc_healthy,
            "slot": slot,
            "tasks": {
                name: {
                    "runs": s.runs,
                    "skipped_ticks": s.skipped_ticks,
                    "failures": s.failures,
                    "last_error": s.last_error,
                }
                for name, s in self.task_stats().items()
            },
        }

    async def _cleanup(self) -> None:
        """Clean up resources."""
        if self._dispatcher:
            await self._dispatcher.aclose()
            self._dispatcher = None

        if self._solana_client:
            await self._solana_client.aclose()
            self._solana_client = None

        if self._db_manager:
            await self._db_manager.dispose_async()
            self._db_manager = None

        if self._redis:
            await self._redis.aclose()
            self._redis = None

        self._engine = None
        self._discovery = None
        self._monitor = None
        self._aggregator = None
        self._price_cache = None
        self._bus = None
        logger.debug("Resources cleaned up")

    async def close(self) -> None:
        """Release resources acquired by ``initialize`` without a full start."""
        if self._state == PipelineState.STOPPED:
            await self._cleanup()
        else:
            await self.stop()

    async def run(self) -> None:
        """Start the pipeline and run until interrupted.

        Example:
            ```python
            pipeline = Pipeline()
            try:
                await pipeline.run()
            except KeyboardInterrupt:
                pass
            ```
        """
        await self.start()

        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    def request_stop(self) -> None:
        """Ask a running ``run()`` to return (safe to call from a signal handler)."""
        if self._stop_event:
            self._stop_event.set()

    async def __aenter__(self) -> Pipeline:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()
