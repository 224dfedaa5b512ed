"""Alerter module - rule evaluation, formatting and notification dispatch."""

from solana_whale_tracker.alerter.conditions import (
    EVALUATORS,
    compare,
    evaluate_condition,
    evaluate_conditions,
)
from solana_whale_tracker.alerter.dispatcher import DispatchResult, NotificationDispatcher
from solana_whale_tracker.alerter.engine import AlertRuleEngine, EngineStats
from solana_whale_tracker.alerter.formatter import AlertFormatter
from solana_whale_tracker.alerter.models import (
    AlertCondition,
    ConditionType,
    FormattedAlert,
    Operator,
)

__all__ = [
    "EVALUATORS",
    "AlertCondition",
    "AlertFormatter",
    "AlertRuleEngine",
    "ConditionType",
    "DispatchResult",
    "EngineStats",
    "FormattedAlert",
    "NotificationDispatcher",
    "Operator",
    "compare",
    "evaluate_condition",
    "evaluate_conditions",
]
