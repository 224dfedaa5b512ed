"""Notification channels."""

from solana_whale_tracker.alerter.channels.base import BaseChannel, NotificationChannel
from solana_whale_tracker.alerter.channels.discord import DiscordChannel
from solana_whale_tracker.alerter.channels.email import EmailChannel
from solana_whale_tracker.alerter.channels.slack import SlackChannel
from solana_whale_tracker.alerter.channels.sms import SmsChannel
from solana_whale_tracker.alerter.channels.telegram import TelegramChannel

__all__ = [
    "BaseChannel",
    "DiscordChannel",
    "EmailChannel",
    "NotificationChannel",
    "SlackChannel",
    "SmsChannel",
    "TelegramChannel",
]
