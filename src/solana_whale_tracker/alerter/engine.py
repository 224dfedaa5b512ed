"""Alert rule engine.

Evaluates every active alert against one market snapshot per cycle,
records matches in the trigger log and hands them to the dispatcher.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from solana_whale_tracker.alerter.conditions import evaluate_conditions
from solana_whale_tracker.alerter.models import AlertCondition
from solana_whale_tracker.realtime.bus import ALERT_TRIGGERED, BroadcastBus
from solana_whale_tracker.storage.repos import (
    AlertDTO,
    AlertRepository,
    AlertTriggerDTO,
    AlertTriggerRepository,
)

if TYPE_CHECKING:
    from solana_whale_tracker.aggregator.models import MarketSnapshot
    from solana_whale_tracker.aggregator.snapshot import MarketSnapshotAggregator
    from solana_whale_tracker.alerter.dispatcher import NotificationDispatcher
    from solana_whale_tracker.alerter.formatter import AlertFormatter
    from solana_whale_tracker.storage.database import DatabaseManager

logger = logging.getLogger(__name__)


def _parse_conditions(alert: AlertDTO) -> list[AlertCondition]:
    return [AlertCondition.from_dict(c) for c in alert.conditions]


@dataclass
class EngineStats:
    """Running totals for the alert engine."""

    cycles: int = 0
    alerts_evaluated: int = 0
    alerts_triggered: int = 0
    delivery_failures: int = 0
    errors: int = 0
    last_cycle_at: datetime | None = None


class AlertRuleEngine:
    """Evaluates active alerts and dispatches notifications on match.

    There is no cooldown: an alert whose conditions stay true fires on every
    cycle.
    """

    def __init__(
        self,
        db: DatabaseManager,
        aggregator: MarketSnapshotAggregator,
        dispatcher: NotificationDispatcher,
        formatter: AlertFormatter,
        *,
        bus: BroadcastBus | None = None,
        dry_run: bool = False,
    ) -> None:
        self._db = db
        self._aggregator = aggregator
        self._dispatcher = dispatcher
        self._formatter = formatter
        self._bus = bus
        self._dry_run = dry_run
        self._stats = EngineStats()

    @property
    def stats(self) -> EngineStats:
        return self._stats

    async def run_cycle(self, now: datetime | None = None) -> int:
        """Evaluate all active alerts once.

        Returns:
            Number of alerts that fired this cycle.
        """
        self._stats.cycles += 1
        self._stats.last_cycle_at = datetime.now(UTC)

        async with self._db.get_async_session() as session:
            alerts = await AlertRepository(session).list_active()
        if not alerts:
            logger.debug("No active alerts to evaluate")
            return 0

        snapshot = await self._aggregator.build_snapshot(now)

        fired = 0
        for alert in alerts:
            self._stats.alerts_evaluated += 1
            try:
                if await self.process_alert(alert, snapshot):
                    fired += 1
            except Exception as e:
                self._stats.errors += 1
                logger.warning("Failed to process alert %s (%s): %s", alert.id, alert.name, e)

        if fired:
            logger.info("%d of %d alerts triggered", fired, len(alerts))
        return fired

    def evaluate_alert(self, alert: AlertDTO, snapshot: MarketSnapshot) -> bool:
        """Whether all of the alert's conditions hold for ``snapshot``."""
        return evaluate_conditions(_parse_conditions(alert), snapshot)

    async def process_alert(self, alert: AlertDTO, snapshot: MarketSnapshot) -> bool:
        """Evaluate one alert and, on match, record and dispatch it.

        The trigger row is written with ``success=True`` before delivery and
        corrected afterwards if any channel failed; it is never rolled back.

        Returns:
            True if the alert fired.
        """
        if not self.evaluate_alert(alert, snapshot):
            return False
        assert alert.id is not None
        conditions = _parse_conditions(alert)

        message = self._formatter.build_message(alert, conditions, snapshot)
        formatted = self._formatter.format(alert, conditions, snapshot, message=message)
        triggered_at = datetime.now(UTC)

        async with self._db.get_async_session() as session:
            await AlertRepository(session).record_trigger(alert.id, triggered_at=triggered_at)
            trigger = await AlertTriggerRepository(session).insert(
                AlertTriggerDTO(
                    alert_id=alert.id,
                    conditions=alert.conditions,
                    data=snapshot.to_dict(),
                    message=message,
                    success=True,
                    triggered_at=triggered_at,
                )
            )
        self._stats.alerts_triggered += 1

        if self._dry_run:
            logger.info("[DRY RUN] Would send alert %s to %s: %s", alert.name, alert.actions, message)
            success = True
        else:
            result = await self._dispatcher.dispatch(alert.actions, formatted)
            success = result.all_succeeded

        if not success:
            self._stats.delivery_failures += 1
            assert trigger.id is not None
            async with self._db.get_async_session() as session:
                await AlertTriggerRepository(session).set_success(trigger.id, False)

        logger.info("Alert triggered: %s (%s)", alert.name, message)
        if self._bus:
            await self._bus.broadcast(
                ALERT_TRIGGERED,
                {
                    "alert_id": alert.id,
                    "alert_name": alert.name,
                    "message": message,
                    "timestamp": triggered_at.isoformat(),
                    "success": success,
                },
            )
        return True
