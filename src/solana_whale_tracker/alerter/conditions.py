"""Alert condition evaluators.

Each ``ConditionType`` maps to one evaluator in a closed registry. Unknown
types and operators evaluate to False, so a malformed alert never fires.
"""

from __future__ import annotations

import operator as op
from collections.abc import Callable, Sequence
from decimal import Decimal

from solana_whale_tracker.aggregator.models import MarketSnapshot
from solana_whale_tracker.alerter.models import AlertCondition, ConditionType, Operator
from solana_whale_tracker.storage.repos import TransactionDTO, WhaleDTO

Evaluator = Callable[[AlertCondition, MarketSnapshot], bool]

_COMPARATORS: dict[Operator, Callable[[Decimal, Decimal], bool]] = {
    Operator.GT: op.gt,
    Operator.LT: op.lt,
    Operator.EQ: op.eq,
    Operator.GTE: op.ge,
    Operator.LTE: op.le,
    Operator.NE: op.ne,
}


def compare(left: Decimal, operator: Operator | None, right: Decimal) -> bool:
    """Apply ``operator`` to the two operands; False if it is unrecognised."""
    if operator is None:
        return False
    comparator = _COMPARATORS.get(operator)
    if comparator is None:
        return False
    return bool(comparator(left, right))


def matching_whales(condition: AlertCondition, snapshot: MarketSnapshot) -> list[WhaleDTO]:
    return [w for w in snapshot.whales if compare(w.balance, condition.operator, condition.value)]


def matching_transactions(
    condition: AlertCondition, snapshot: MarketSnapshot
) -> list[TransactionDTO]:
    return [
        t for t in snapshot.transactions if compare(t.amount, condition.operator, condition.value)
    ]


def _evaluate_balance(condition: AlertCondition, snapshot: MarketSnapshot) -> bool:
    return bool(matching_whales(condition, snapshot))


def _evaluate_transaction(condition: AlertCondition, snapshot: MarketSnapshot) -> bool:
    return bool(matching_transactions(condition, snapshot))


def _evaluate_price(condition: AlertCondition, snapshot: MarketSnapshot) -> bool:
    return compare(snapshot.price, condition.operator, condition.value)


def _evaluate_volume(condition: AlertCondition, snapshot: MarketSnapshot) -> bool:
    return compare(snapshot.volume_24h, condition.operator, condition.value)


EVALUATORS: dict[ConditionType, Evaluator] = {
    ConditionType.BALANCE: _evaluate_balance,
    ConditionType.TRANSACTION: _evaluate_transaction,
    ConditionType.PRICE: _evaluate_price,
    ConditionType.VOLUME: _evaluate_volume,
}


def evaluate_condition(condition: AlertCondition, snapshot: MarketSnapshot) -> bool:
    evaluator = EVALUATORS.get(condition.type)
    if evaluator is None or condition.operator is None:
        return False
    return evaluator(condition, snapshot)


def evaluate_conditions(conditions: Sequence[AlertCondition], snapshot: MarketSnapshot) -> bool:
    """True only if there is at least one condition and all of them hold."""
    if not conditions:
        return False
    return all(evaluate_condition(c, snapshot) for c in conditions)
