"""Tests for the alert formatter."""

from decimal import Decimal

import pytest

from solana_whale_tracker.alerter.formatter import (
    COLOR_WHALE_ALERT,
    AlertFormatter,
    format_price,
    format_usd,
    truncate_address,
)
from solana_whale_tracker.alerter.models import AlertCondition
from solana_whale_tracker.storage.repos import AlertDTO, WhaleDTO

MINT = "DnUsQnwNot38V9JbisNC18VHZkae1eKK5N2Dgy55pump"
WHALE = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


def _alert(*conditions: dict) -> tuple[AlertDTO, list[AlertCondition]]:
    alert = AlertDTO(id="alert-1", name="Whale Watch", conditions=list(conditions), actions=["discord"])
    return alert, [AlertCondition.from_dict(c) for c in conditions]


@pytest.fixture
def formatter() -> AlertFormatter:
    return AlertFormatter(token_mint=MINT)


class TestHelpers:
    """Tests for formatting helpers."""

    def test_truncate_address(self) -> None:
        assert truncate_address(WHALE) == "7xKXtg2C..."
        assert truncate_address("short") == "short"

    def test_format_usd(self) -> None:
        assert format_usd(Decimal("300000")) == "$300,000.00"

    def test_format_price(self) -> None:
        assert format_price(Decimal("0.0123")) == "$0.0123"
        assert format_price(Decimal("2.5")) == "$2.5000"


class TestBuildMessage:
    """Tests for AlertFormatter.build_message."""

    def test_transaction_message(self, formatter, snapshot_factory, transaction_factory) -> None:
        alert, conditions = _alert({"type": "transaction", "operator": ">", "value": 500000})
        snapshot = snapshot_factory(
            transactions=[
                transaction_factory("sig-1", "600000", whale_address=WHALE),
                transaction_factory("sig-2", "550000", whale_address="Other", type="sell"),
            ]
        )

        message = formatter.build_message(alert, conditions, snapshot)

        assert message == "🐋 Large buy detected! 600,000 tokens (7xKXtg2C...)"

    def test_volume_message(self, formatter, snapshot_factory) -> None:
        alert, conditions = _alert({"type": "volume", "operator": ">=", "value": 250000})
        snapshot = snapshot_factory(volume_24h=Decimal("300000"))

        assert formatter.build_message(alert, conditions, snapshot) == (
            "📈 Volume spike detected! 24h volume: $300,000.00"
        )

    def test_balance_message(self, formatter, snapshot_factory) -> None:
        alert, conditions = _alert({"type": "balance", "operator": ">=", "value": 100000})
        snapshot = snapshot_factory(
            whales=[
                WhaleDTO(address="A", balance=Decimal("150000")),
                WhaleDTO(address="B", balance=Decimal("100000")),
                WhaleDTO(address="C", balance=Decimal("50000")),
            ]
        )

        assert formatter.build_message(alert, conditions, snapshot) == (
            "🆕 2 whales detected with 100,000+ tokens!"
        )

    def test_price_message(self, formatter, snapshot_factory) -> None:
        alert, conditions = _alert({"type": "price", "operator": ">", "value": "0.01"})
        snapshot = snapshot_factory(price=Decimal("0.0123"))

        assert formatter.build_message(alert, conditions, snapshot) == "💰 Price alert! Current price: $0.0123"

    def test_fallback_message(self, formatter, snapshot_factory) -> None:
        alert, conditions = _alert({"type": "holders", "operator": ">", "value": 1})

        assert formatter.build_message(alert, conditions, snapshot_factory()) == (
            "🚨 Whale Watch alert triggered!"
        )


class TestFormat:
    """Tests for multi-channel formatting."""

    def test_discord_embed(self, formatter, snapshot_factory) -> None:
        alert, conditions = _alert({"type": "volume", "operator": ">=", "value": 250000})
        snapshot = snapshot_factory(volume_24h=Decimal("300000"), whale_count=12)

        formatted = formatter.format(alert, conditions, snapshot)

        assert formatted.title == "🐋 Whale Watch - Whale Alert"
        embed = formatted.discord_embed
        assert embed["color"] == COLOR_WHALE_ALERT
        assert embed["url"] == f"https://solscan.io/token/{MINT}"
        fields = {f["name"]: f["value"] for f in embed["fields"]}
        assert fields["24h Volume"] == "$300,000.00"
        assert fields["Active Whales"] == "12"
        assert embed["footer"] == {"text": "Solana Whale Tracker"}

    def test_transaction_links(self, formatter, snapshot_factory, transaction_factory) -> None:
        alert, conditions = _alert({"type": "transaction", "operator": ">", "value": 500000})
        snapshot = snapshot_factory(transactions=[transaction_factory("sig-big", "600000", whale_address=WHALE)])

        formatted = formatter.format(alert, conditions, snapshot)

        assert formatted.links["transaction"] == "https://solscan.io/tx/sig-big"
        assert formatted.links["wallet"] == f"https://solscan.io/account/{WHALE}"
        assert "https://solscan.io/tx/sig-big" in formatted.plain_text

    def test_telegram_escapes_markdown(self, formatter, snapshot_factory) -> None:
        alert, conditions = _alert({"type": "volume", "operator": ">=", "value": 250000})
        snapshot = snapshot_factory(volume_24h=Decimal("300000"))

        text = formatter.format(alert, conditions, snapshot).telegram_markdown

        assert "\\$300,000\\.00" in text
        assert "Volume spike detected\\!" in text

    def test_precomputed_message_is_used(self, formatter, snapshot_factory) -> None:
        alert, conditions = _alert({"type": "volume", "operator": ">=", "value": 250000})

        formatted = formatter.format(alert, conditions, snapshot_factory(), message="custom body")

        assert formatted.body == "custom body"
        assert formatted.slack_blocks[1]["text"]["text"] == "custom body"
