"""Alert message formatter for multi-channel delivery.

This module turns a matched alert and the snapshot it matched against into
human-readable messages for Discord, Telegram, Slack and plain text (email
and SMS).
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from solana_whale_tracker.aggregator.models import MarketSnapshot
from solana_whale_tracker.alerter.conditions import matching_transactions, matching_whales
from solana_whale_tracker.alerter.models import AlertCondition, ConditionType, FormattedAlert
from solana_whale_tracker.storage.repos import AlertDTO

SOLSCAN_TOKEN_URL = "https://solscan.io/token/{mint}"
SOLSCAN_ACCOUNT_URL = "https://solscan.io/account/{address}"
SOLSCAN_TX_URL = "https://solscan.io/tx/{signature}"

# Discord embed color (decimal value of #FF6B35)
COLOR_WHALE_ALERT = 0xFF6B35

FOOTER_TEXT = "Solana Whale Tracker"


def truncate_address(address: str, chars: int = 8) -> str:
    """Shorten a base58 address to its first ``chars`` characters."""
    if len(address) <= chars:
        return address
    return f"{address[:chars]}..."


def format_usd(amount: Decimal) -> str:
    """Format a USD amount with commas and 2 decimal places."""
    return f"${amount:,.2f}"


def format_price(price: Decimal) -> str:
    """Format a token price; sub-dollar prices keep up to 8 decimals."""
    if price >= 1:
        return f"${price:,.4f}"
    text = f"{price:.8f}".rstrip("0").rstrip(".")
    return f"${text or '0'}"


def format_tokens(amount: Decimal) -> str:
    """Format a token amount with thousands separators."""
    if amount == amount.to_integral_value():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


class AlertFormatter:
    """Formats matched alerts into multi-channel messages."""

    def __init__(self, token_mint: str | None = None) -> None:
        self.token_mint = token_mint

    def build_message(
        self,
        alert: AlertDTO,
        conditions: Sequence[AlertCondition],
        snapshot: MarketSnapshot,
    ) -> str:
        """Render the one-line alert message.

        The first condition with a dedicated template decides the wording;
        alerts with none fall back to the alert name.
        """
        for condition in conditions:
            if condition.type == ConditionType.TRANSACTION:
                matches = matching_transactions(condition, snapshot)
                if matches:
                    largest = max(matches, key=lambda t: t.amount)
                    return (
                        f"🐋 Large {largest.type} detected! {format_tokens(largest.amount)} tokens "
                        f"({truncate_address(largest.whale_address)})"
                    )
            elif condition.type == ConditionType.VOLUME:
                return f"📈 Volume spike detected! 24h volume: {format_usd(snapshot.volume_24h)}"
            elif condition.type == ConditionType.BALANCE:
                count = len(matching_whales(condition, snapshot))
                noun = "whale" if count == 1 else "whales"
                return f"🆕 {count} {noun} detected with {format_tokens(condition.value)}+ tokens!"
            elif condition.type == ConditionType.PRICE:
                return f"💰 Price alert! Current price: {format_price(snapshot.price)}"
        return f"🚨 {alert.name} alert triggered!"

    def format(
        self,
        alert: AlertDTO,
        conditions: Sequence[AlertCondition],
        snapshot: MarketSnapshot,
        message: str | None = None,
    ) -> FormattedAlert:
        """Format an alert into all channel representations.

        Args:
            alert: The alert definition that matched.
            conditions: Its parsed conditions.
            snapshot: The snapshot it matched against.
            message: Pre-rendered message; built from the conditions if omitted.

        Returns:
            FormattedAlert with all channel formats.
        """
        body = message or self.build_message(alert, conditions, snapshot)
        title = f"🐋 {alert.name} - Whale Alert"
        links = self._build_links(conditions, snapshot)

        return FormattedAlert(
            title=title,
            body=body,
            discord_embed=self._build_discord_embed(title, body, snapshot, links),
            telegram_markdown=self._build_telegram_markdown(alert, body, snapshot, links),
            slack_blocks=self._build_slack_blocks(title, body, snapshot, links),
            plain_text=self._build_plain_text(title, body, snapshot, links),
            links=links,
        )

    def _build_links(
        self,
        conditions: Sequence[AlertCondition],
        snapshot: MarketSnapshot,
    ) -> dict[str, str]:
        links: dict[str, str] = {}
        if self.token_mint:
            links["token"] = SOLSCAN_TOKEN_URL.format(mint=self.token_mint)
        for condition in conditions:
            if condition.type != ConditionType.TRANSACTION:
                continue
            matches = matching_transactions(condition, snapshot)
            if matches:
                largest = max(matches, key=lambda t: t.amount)
                links["wallet"] = SOLSCAN_ACCOUNT_URL.format(address=largest.whale_address)
                links["transaction"] = SOLSCAN_TX_URL.format(signature=largest.signature)
                break
        return links

    def _build_discord_embed(
        self,
        title: str,
        body: str,
        snapshot: MarketSnapshot,
        links: dict[str, str],
    ) -> dict[str, object]:
        """Build Discord-optimized embed format."""
        fields: list[dict[str, object]] = [
            {"name": "Current Price", "value": format_price(snapshot.price), "inline": True},
            {"name": "24h Volume", "value": format_usd(snapshot.volume_24h), "inline": True},
            {"name": "Active Whales", "value": str(snapshot.whale_count), "inline": True},
        ]
        if "transaction" in links:
            fields.append(
                {"name": "Transaction", "value": f"[View on Solscan]({links['transaction']})", "inline": False}
            )

        embed: dict[str, object] = {
            "title": title,
            "description": body,
            "color": COLOR_WHALE_ALERT,
            "fields": fields,
            "timestamp": snapshot.as_of.isoformat(),
            "footer": {"text": FOOTER_TEXT},
        }
        if "token" in links:
            embed["url"] = links["token"]
        return embed

    def _build_telegram_markdown(
        self,
        alert: AlertDTO,
        body: str,
        snapshot: MarketSnapshot,
        links: dict[str, str],
    ) -> str:
        """Build Telegram MarkdownV2 format."""
        lines = [
            f"🐋 *{self._escape_telegram_markdown(alert.name)}*",
            "",
            self._escape_telegram_markdown(body),
            "",
            f"*Price:* {self._escape_telegram_markdown(format_price(snapshot.price))}",
            f"*24h Volume:* {self._escape_telegram_markdown(format_usd(snapshot.volume_24h))}",
            f"*Active Whales:* {snapshot.whale_count}",
        ]
        if "transaction" in links:
            lines.append("")
            lines.append(f"[View Transaction]({links['transaction']})")
        return "\n".join(lines)

    def _escape_telegram_markdown(self, text: str) -> str:
        """Escape special Telegram MarkdownV2 characters."""
        special_chars = "_*[]()~`>#+-=|{}.!$"
        for char in special_chars:
            text = text.replace(char, f"\\{char}")
        return text

    def _build_slack_blocks(
        self,
        title: str,
        body: str,
        snapshot: MarketSnapshot,
        links: dict[str, str],
    ) -> list[dict[str, object]]:
        blocks: list[dict[str, object]] = [
            {"type": "header", "text": {"type": "plain_text", "text": title}},
            {"type": "section", "text": {"type": "mrkdwn", "text": body}},
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Current Price*\n{format_price(snapshot.price)}"},
                    {"type": "mrkdwn", "text": f"*24h Volume*\n{format_usd(snapshot.volume_24h)}"},
                ],
            },
        ]
        if "transaction" in links:
            blocks.append(
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"<{links['transaction']}|View on Solscan>"}],
                }
            )
        return blocks

    def _build_plain_text(
        self,
        title: str,
        body: str,
        snapshot: MarketSnapshot,
        links: dict[str, str],
    ) -> str:
        """Build plain text format for email and SMS."""
        lines = [
            title,
            "=" * 30,
            "",
            body,
            "",
            f"Current Price: {format_price(snapshot.price)}",
            f"24h Volume: {format_usd(snapshot.volume_24h)}",
            f"Active Whales: {snapshot.whale_count}",
        ]
        if links:
            lines.append("")
            for name, url in links.items():
                lines.append(f"{name.title()}: {url}")
        return "\n".join(lines)
