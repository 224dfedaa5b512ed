"""Data models for the alerter module."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ConditionType(str, Enum):
    """What a condition compares against the market snapshot."""

    BALANCE = "balance"
    TRANSACTION = "transaction"
    PRICE = "price"
    VOLUME = "volume"
    UNKNOWN = "unknown"


class Operator(str, Enum):
    """Comparison operators supported in alert conditions."""

    GT = ">"
    LT = "<"
    EQ = "="
    GTE = ">="
    LTE = "<="
    NE = "!="


@dataclass(frozen=True)
class AlertCondition:
    """A single parsed alert condition.

    Conditions that cannot be parsed keep ``type=UNKNOWN`` (or
    ``operator=None``) and never match.

    Attributes:
        type: Snapshot field family the condition looks at.
        operator: Comparison to apply, or None if unrecognised.
        value: Threshold compared against.
        timeframe: Optional window hint; stored but not used in evaluation.
    """

    type: ConditionType
    operator: Operator | None
    value: Decimal
    timeframe: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> AlertCondition:
        """Parse a stored condition, failing closed on malformed input."""
        if not isinstance(data, dict):
            logger.debug("Malformed alert condition: %r", data)
            return cls(type=ConditionType.UNKNOWN, operator=None, value=Decimal("0"))

        try:
            condition_type = ConditionType(str(data.get("type")))
        except ValueError:
            condition_type = ConditionType.UNKNOWN

        try:
            operator: Operator | None = Operator(str(data.get("operator")))
        except ValueError:
            operator = None

        raw_value = data.get("value")
        try:
            if raw_value is None or isinstance(raw_value, bool):
                raise InvalidOperation
            value = Decimal(str(raw_value))
            if not value.is_finite():
                raise InvalidOperation
        except (InvalidOperation, ValueError):
            logger.debug("Alert condition has invalid value: %r", raw_value)
            return cls(type=ConditionType.UNKNOWN, operator=operator, value=Decimal("0"))

        timeframe = data.get("timeframe")
        return cls(
            type=condition_type,
            operator=operator,
            value=value,
            timeframe=str(timeframe) if timeframe is not None else None,
        )


@dataclass(frozen=True)
class FormattedAlert:
    """A formatted alert message ready for delivery across multiple channels.

    Attributes:
        title: Short alert title/headline.
        body: Main alert message text.
        discord_embed: Discord-optimized embed dictionary.
        telegram_markdown: Telegram-formatted markdown string.
        slack_blocks: Slack Block Kit blocks.
        plain_text: Plain text fallback for email and SMS.
        links: Dictionary of relevant links (e.g., token, wallet explorer).
    """

    title: str
    body: str
    discord_embed: dict[str, object]
    telegram_markdown: str
    slack_blocks: list[dict[str, object]]
    plain_text: str
    links: dict[str, str] = field(default_factory=dict)
