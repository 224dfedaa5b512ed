"""Command-line entry point for the Solana Whale Tracker.

Usage:
    whale-tracker run
    whale-tracker init-db
    whale-tracker discover-once
    whale-tracker evaluate-once
    whale-tracker alerts add --name "Big volume" --condition "volume>250000" --action discord
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import re
import signal
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from solana_whale_tracker import __version__
from solana_whale_tracker.alerter.models import ConditionType, Operator
from solana_whale_tracker.config import Settings, get_settings
from solana_whale_tracker.pipeline import Pipeline
from solana_whale_tracker.storage.database import DatabaseManager
from solana_whale_tracker.storage.repos import AlertDTO, AlertRepository, AlertTriggerRepository


T = TypeVar("T")

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

_CONDITION_RE = re.compile(r"^\s*(\w+)\s*(>=|<=|!=|>|<|=)\s*(-?[0-9]+(?:\.[0-9]+)?)\s*$")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_condition(expression: str) -> dict[str, Any]:
    """Parse ``"volume>=250000"`` into a stored condition dictionary."""
    match = _CONDITION_RE.match(expression)
    if not match:
        raise click.BadParameter(f"expected <type><op><value>, got {expression!r}")
    kind, op, value = match.groups()
    if kind not in {c.value for c in ConditionType if c != ConditionType.UNKNOWN}:
        raise click.BadParameter(f"unknown condition type {kind!r}")
    if op not in {o.value for o in Operator}:
        raise click.BadParameter(f"unknown operator {op!r}")
    return {"type": kind, "operator": op, "value": float(value) if "." in value else int(value)}


def _run_with_db(settings: Settings, body: Callable[[DatabaseManager], Awaitable[T]]) -> T:
    async def runner() -> T:
        db = DatabaseManager(settings.database.url)
        try:
            return await body(db)
        finally:
            await db.dispose_async()

    return asyncio.run(runner())


def _run_with_pipeline(
    settings: Settings,
    body: Callable[[Pipeline], Awaitable[T]],
    *,
    dry_run: bool | None = None,
) -> T:
    async def runner() -> T:
        pipeline = Pipeline(settings, dry_run=dry_run)
        try:
            return await body(pipeline)
        finally:
            await pipeline.close()

    return asyncio.run(runner())


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__, prog_name="whale-tracker")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Solana Whale Tracker - whale discovery, transaction monitoring and alerts."""
    settings = get_settings()
    configure_logging(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.option("--dry-run", is_flag=True, default=None, help="Evaluate alerts without sending notifications.")
@click.pass_context
def run(ctx: click.Context, dry_run: bool | None) -> None:
    """Run all loops until interrupted."""
    settings: Settings = ctx.obj["settings"]

    async def runner() -> None:
        pipeline = Pipeline(settings, dry_run=dry_run)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, pipeline.request_stop)
        await pipeline.run()

    asyncio.run(runner())


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create database tables (use alembic for managed deployments)."""
    settings: Settings = ctx.obj["settings"]
    _run_with_db(settings, lambda db: db.init_schema_async())
    click.echo("Database schema initialized")


@cli.command("discover-once")
@click.pass_context
def discover_once(ctx: click.Context) -> None:
    """Run a single whale discovery cycle."""
    settings: Settings = ctx.obj["settings"]
    result = _run_with_pipeline(settings, lambda p: p.run_discovery_once())
    if result is None:
        raise click.ClickException("Holder list unavailable; nothing was written")
    click.echo(
        f"new={result.new_whales} updated={result.updated_whales} "
        f"deactivated={result.deactivated_whales} failed={result.failed}"
    )


@cli.command("monitor-once")
@click.pass_context
def monitor_once(ctx: click.Context) -> None:
    """Run a single transaction monitor cycle."""
    settings: Settings = ctx.obj["settings"]
    written = _run_with_pipeline(settings, lambda p: p.run_monitor_once())
    click.echo(f"new_transactions={written}")


@cli.command("evaluate-once")
@click.option("--dry-run", is_flag=True, default=None, help="Record triggers without sending notifications.")
@click.pass_context
def evaluate_once(ctx: click.Context, dry_run: bool | None) -> None:
    """Run a single alert evaluation cycle."""
    settings: Settings = ctx.obj["settings"]
    fired = _run_with_pipeline(settings, lambda p: p.run_evaluation_once(), dry_run=dry_run)
    click.echo(f"alerts_triggered={fired}")


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check RPC connectivity."""
    settings: Settings = ctx.obj["settings"]
    report = _run_with_pipeline(settings, lambda p: p.health_check())
    click.echo(json.dumps(report, indent=2, default=str))
    if not report["rpc_healthy"]:
        ctx.exit(1)


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the effective configuration with secrets redacted."""
    settings: Settings = ctx.obj["settings"]
    click.echo(json.dumps(settings.redacted_summary(), indent=2))


@cli.group()
def alerts() -> None:
    """Manage alert definitions."""


@alerts.command("list")
@click.pass_context
def alerts_list(ctx: click.Context) -> None:
    """List all alert definitions."""
    settings: Settings = ctx.obj["settings"]

    async def body(db: DatabaseManager) -> list[AlertDTO]:
        async with db.get_async_session() as session:
            return await AlertRepository(session).list_all()

    for alert in _run_with_db(settings, body):
        status = "active" if alert.is_active else "inactive"
        click.echo(
            f"{alert.id}  {alert.name}  [{status}]  fired={alert.triggered_count}  "
            f"conditions={json.dumps(alert.conditions)}  actions={','.join(alert.actions)}"
        )


@alerts.command("add")
@click.option("--name", required=True, help="Alert name.")
@click.option("--description", default=None, help="Optional description.")
@click.option("--condition", "conditions", multiple=True, required=True, help='e.g. "volume>=250000".')
@click.option("--action", "actions", multiple=True, required=True, help="Channel name (repeatable).")
@click.pass_context
def alerts_add(
    ctx: click.Context,
    name: str,
    description: str | None,
    conditions: tuple[str, ...],
    actions: tuple[str, ...],
) -> None:
    """Create an alert definition."""
    settings: Settings = ctx.obj["settings"]
    parsed = [parse_condition(c) for c in conditions]

    async def body(db: DatabaseManager) -> AlertDTO:
        async with db.get_async_session() as session:
            return await AlertRepository(session).create(
                AlertDTO(name=name, description=description, conditions=parsed, actions=list(actions))
            )

    alert = _run_with_db(settings, body)
    click.echo(f"Created alert {alert.id}")


def _set_active(settings: Settings, alert_id: str, active: bool) -> bool:
    async def body(db: DatabaseManager) -> bool:
        async with db.get_async_session() as session:
            repo = AlertRepository(session)
            if await repo.get(alert_id) is None:
                return False
            await repo.set_active(alert_id, active)
            return True

    return _run_with_db(settings, body)


@alerts.command("enable")
@click.argument("alert_id")
@click.pass_context
def alerts_enable(ctx: click.Context, alert_id: str) -> None:
    """Activate an alert."""
    if not _set_active(ctx.obj["settings"], alert_id, True):
        raise click.ClickException(f"Alert {alert_id} not found")
    click.echo(f"Alert {alert_id} enabled")


@alerts.command("disable")
@click.argument("alert_id")
@click.pass_context
def alerts_disable(ctx: click.Context, alert_id: str) -> None:
    """Deactivate an alert."""
    if not _set_active(ctx.obj["settings"], alert_id, False):
        raise click.ClickException(f"Alert {alert_id} not found")
    click.echo(f"Alert {alert_id} disabled")


@alerts.command("history")
@click.argument("alert_id")
@click.option("--limit", default=20, show_default=True, help="Number of triggers to show.")
@click.pass_context
def alerts_history(ctx: click.Context, alert_id: str, limit: int) -> None:
    """Show recent triggers of an alert."""
    settings: Settings = ctx.obj["settings"]

    async def body(db: DatabaseManager) -> list[Any]:
        async with db.get_async_session() as session:
            return await AlertTriggerRepository(session).list_for_alert(alert_id, limit=limit)

    for trigger in _run_with_db(settings, body):
        status = "ok" if trigger.success else "FAILED"
        stamp = trigger.triggered_at.isoformat() if trigger.triggered_at else "-"
        click.echo(f"{stamp}  [{status}]  {trigger.message}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
