"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Solana Whale Tracker, loading and validating environment variables at
startup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Literal, TypeVar

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DEFAULT_TOKEN_MINT = "DnUsQnwNot38V9JbisNC18VHZkae1eKK5N2Dgy55pump"

_GroupT = TypeVar("_GroupT", bound=BaseSettings)


def _from_env(group: type[_GroupT]) -> Callable[[], _GroupT]:
    return lambda: group(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL (or SQLite for local runs) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Redis connection string (realtime broadcast bus)",
    )
    broadcast_channel: str = Field(
        default="whale-tracker:events",
        alias="BROADCAST_CHANNEL",
        description="Redis pub/sub channel for live events",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class SolanaSettings(BaseSettings):
    """Solana RPC and price feed settings."""

    model_config = SettingsConfigDict(env_prefix="SOLANA_", extra="ignore")

    rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        alias="SOLANA_RPC_URL",
        description="Primary Solana JSON-RPC endpoint",
    )
    fallback_rpc_url: str | None = Field(
        default=None,
        alias="SOLANA_FALLBACK_RPC_URL",
        description="Fallback Solana JSON-RPC endpoint",
    )
    token_mint: str = Field(
        default=DEFAULT_TOKEN_MINT,
        alias="SOLANA_TOKEN_MINT",
        description="SPL token mint to track",
    )
    price_api_url: str = Field(
        default="https://price.jup.ag/v6/price",
        alias="SOLANA_PRICE_API_URL",
        description="Jupiter-compatible price endpoint (queried with ids=<mint>)",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        alias="SOLANA_REQUEST_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
        description="Upper bound on any single RPC or price call",
    )
    max_requests_per_second: float = Field(
        default=10.0,
        alias="SOLANA_MAX_REQUESTS_PER_SECOND",
        gt=0.0,
        le=1000.0,
        description="Client-side rate limit for RPC calls",
    )

    @field_validator("rpc_url", "fallback_rpc_url", "price_api_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate endpoint URL format."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("Solana endpoints must be HTTP(S) URLs")
        return v


class DiscoverySettings(BaseSettings):
    """Whale discovery loop settings."""

    model_config = SettingsConfigDict(env_prefix="DISCOVERY_", extra="ignore")

    whale_threshold: Decimal = Field(
        default=Decimal("100000"),
        alias="DISCOVERY_WHALE_THRESHOLD",
        description="Minimum token balance (inclusive) for an address to count as a whale",
    )
    interval_seconds: int = Field(
        default=300,
        alias="DISCOVERY_INTERVAL_SECONDS",
        ge=10,
        le=86_400,
        description="How often to refresh holders from chain",
    )
    batch_size: int = Field(
        default=10,
        alias="DISCOVERY_BATCH_SIZE",
        ge=1,
        le=1000,
        description="Holders upserted per batch",
    )
    batch_delay_seconds: float = Field(
        default=0.1,
        alias="DISCOVERY_BATCH_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Pause between batches",
    )

    @field_validator("whale_threshold")
    @classmethod
    def validate_whale_threshold(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("DISCOVERY_WHALE_THRESHOLD must be >= 0")
        return v


class MonitorSettings(BaseSettings):
    """Transaction monitor loop settings."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_", extra="ignore")

    interval_seconds: int = Field(
        default=15,
        alias="MONITOR_INTERVAL_SECONDS",
        ge=1,
        le=3600,
        description="How often to poll top whales for new signatures",
    )
    top_whales: int = Field(
        default=20,
        alias="MONITOR_TOP_WHALES",
        ge=1,
        le=1000,
        description="Number of largest active whales to monitor each cycle",
    )
    signatures_limit: int = Field(
        default=5,
        alias="MONITOR_SIGNATURES_LIMIT",
        ge=1,
        le=1000,
        description="Recent signatures fetched per whale per cycle",
    )
    min_transfer_amount: Decimal = Field(
        default=Decimal("10000"),
        alias="MONITOR_MIN_TRANSFER_AMOUNT",
        description="Transfers at or below this token amount are not recorded",
    )


class SnapshotSettings(BaseSettings):
    """Market snapshot aggregation settings."""

    model_config = SettingsConfigDict(env_prefix="SNAPSHOT_", extra="ignore")

    price_cache_ttl_seconds: float = Field(
        default=60.0,
        alias="SNAPSHOT_PRICE_CACHE_TTL_SECONDS",
        ge=0.0,
        le=3600.0,
        description="How long a fetched price is reused",
    )
    window_hours: int = Field(
        default=24,
        alias="SNAPSHOT_WINDOW_HOURS",
        ge=1,
        le=168,
        description="Trailing window for volume and transaction metrics",
    )
    top_whales: int = Field(
        default=100,
        alias="SNAPSHOT_TOP_WHALES",
        ge=1,
        le=10_000,
        description="Active whales included in each snapshot",
    )
    metrics_interval_seconds: int = Field(
        default=60,
        alias="SNAPSHOT_METRICS_INTERVAL_SECONDS",
        ge=5,
        le=3600,
        description="How often whale metrics are broadcast to live subscribers",
    )


class AlertSettings(BaseSettings):
    """Alert rule engine settings."""

    model_config = SettingsConfigDict(env_prefix="ALERTS_", extra="ignore")

    evaluation_interval_seconds: int = Field(
        default=30,
        alias="ALERTS_EVALUATION_INTERVAL_SECONDS",
        ge=1,
        le=3600,
        description="How often active alerts are evaluated",
    )
    channel_timeout_seconds: float = Field(
        default=10.0,
        alias="ALERTS_CHANNEL_TIMEOUT_SECONDS",
        gt=0.0,
        le=120.0,
        description="Upper bound on a single notification send",
    )


class DiscordSettings(BaseSettings):
    """Discord notification settings."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_", extra="ignore")

    webhook_url: SecretStr | None = Field(
        default=None,
        alias="DISCORD_WEBHOOK_URL",
        description="Discord webhook URL for alerts",
    )

    @property
    def enabled(self) -> bool:
        """Check if Discord notifications are enabled."""
        return self.webhook_url is not None


class TelegramSettings(BaseSettings):
    """Telegram notification settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", extra="ignore")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token",
    )
    chat_id: str | None = Field(
        default=None,
        alias="TELEGRAM_CHAT_ID",
        description="Telegram chat ID for alerts",
    )

    @property
    def enabled(self) -> bool:
        """Check if Telegram notifications are enabled."""
        return self.bot_token is not None and self.chat_id is not None


class SlackSettings(BaseSettings):
    """Slack notification settings."""

    model_config = SettingsConfigDict(env_prefix="SLACK_", extra="ignore")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="SLACK_BOT_TOKEN",
        description="Slack bot token (chat:write scope)",
    )
    channel: str = Field(
        default="#whale-alerts",
        alias="SLACK_CHANNEL",
        description="Slack channel for alerts",
    )

    @property
    def enabled(self) -> bool:
        return self.bot_token is not None


class EmailSettings(BaseSettings):
    """SMTP email notification settings."""

    model_config = SettingsConfigDict(env_prefix="SMTP_", extra="ignore")

    host: str | None = Field(default=None, alias="SMTP_HOST", description="SMTP server host")
    port: int = Field(default=587, alias="SMTP_PORT", ge=1, le=65535, description="SMTP server port")
    user: str | None = Field(default=None, alias="SMTP_USER", description="SMTP username")
    password: SecretStr | None = Field(default=None, alias="SMTP_PASS", description="SMTP password")
    use_ssl: bool = Field(default=False, alias="SMTP_USE_SSL", description="Use implicit TLS (SMTPS)")
    sender: str | None = Field(default=None, alias="EMAIL_FROM", description="From address")
    recipients: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        alias="EMAIL_TO",
        description="Alert recipients (comma-separated)",
    )

    @field_validator("recipients", mode="before")
    @classmethod
    def _parse_recipients(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            return tuple(p.strip() for p in v.split(",") if p.strip())
        if isinstance(v, (list, tuple)):
            return tuple(str(x) for x in v)
        raise TypeError("Invalid EMAIL_TO type")

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.sender and self.recipients)


class TwilioSettings(BaseSettings):
    """Twilio SMS notification settings."""

    model_config = SettingsConfigDict(env_prefix="TWILIO_", extra="ignore")

    account_sid: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    auth_token: SecretStr | None = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    from_number: str | None = Field(default=None, alias="TWILIO_FROM_NUMBER")
    to_numbers: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        alias="TWILIO_TO_NUMBERS",
        description="SMS recipients (comma-separated E.164 numbers)",
    )

    @field_validator("to_numbers", mode="before")
    @classmethod
    def _parse_numbers(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            return tuple(p.strip() for p in v.split(",") if p.strip())
        if isinstance(v, (list, tuple)):
            return tuple(str(x) for x in v)
        raise TypeError("Invalid TWILIO_TO_NUMBERS type")

    @property
    def enabled(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number and self.to_numbers)


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from solana_whale_tracker.config import get_settings

        settings = get_settings()
        print(settings.solana.token_mint)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # Nested groups read .env themselves; the outer model does not pass it down.
    database: DatabaseSettings = Field(default_factory=_from_env(DatabaseSettings))
    redis: RedisSettings = Field(default_factory=_from_env(RedisSettings))
    solana: SolanaSettings = Field(default_factory=_from_env(SolanaSettings))
    discovery: DiscoverySettings = Field(default_factory=_from_env(DiscoverySettings))
    monitor: MonitorSettings = Field(default_factory=_from_env(MonitorSettings))
    snapshot: SnapshotSettings = Field(default_factory=_from_env(SnapshotSettings))
    alerts: AlertSettings = Field(default_factory=_from_env(AlertSettings))
    discord: DiscordSettings = Field(default_factory=_from_env(DiscordSettings))
    telegram: TelegramSettings = Field(default_factory=_from_env(TelegramSettings))
    slack: SlackSettings = Field(default_factory=_from_env(SlackSettings))
    email: EmailSettings = Field(default_factory=_from_env(EmailSettings))
    twilio: TwilioSettings = Field(default_factory=_from_env(TwilioSettings))

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Evaluate and record alerts without sending notifications",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url),
            "solana": {
                "rpc_url": self.solana.rpc_url,
                "fallback_rpc_url": self.solana.fallback_rpc_url or "(not set)",
                "token_mint": self.solana.token_mint,
                "price_api_url": self.solana.price_api_url,
            },
            "discovery": {
                "whale_threshold": str(self.discovery.whale_threshold),
                "interval_seconds": str(self.discovery.interval_seconds),
            },
            "monitor": {
                "interval_seconds": str(self.monitor.interval_seconds),
                "top_whales": str(self.monitor.top_whales),
                "min_transfer_amount": str(self.monitor.min_transfer_amount),
            },
            "alerts": {
                "evaluation_interval_seconds": str(self.alerts.evaluation_interval_seconds),
            },
            "discord_enabled": str(self.discord.enabled),
            "telegram_enabled": str(self.telegram.enabled),
            "slack_enabled": str(self.slack.enabled),
            "email_enabled": str(self.email.enabled),
            "sms_enabled": str(self.twilio.enabled),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
