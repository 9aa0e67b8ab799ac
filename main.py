#!/usr/bin/env python3
"""
Aptus Assist Bot - Main Entry Point

Usage:
    python main.py --config config/config.yaml login
    python main.py --config config/config.yaml sync
    python main.py --config config/config.yaml run
    python main.py --config config/config.yaml book 2025-06-02 1
"""
import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from aptusbot.app import AptusBot
from aptusbot.common.config import load_config, parse_date
from aptusbot.common.models import SlotStatus

console = Console()

STATUS_STYLES = {
    SlotStatus.FREE: "green",
    SlotStatus.OWN: "cyan",
    SlotStatus.BUSY: "dim",
}


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging"""
    handlers = [RichHandler(console=console, rich_tracebacks=True)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=handlers
    )


def _date_option(value):
    return parse_date(value) if value else None


@click.group()
@click.option("--config", "-c", default=None, help="Path to config file (default: search, then APTUS_* env)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, config, verbose):
    """
    Aptus Assist Bot

    Watches the Aptus booking calendar and books freed-up passes.
    """
    ctx.ensure_object(dict)

    try:
        cfg = load_config(config)
        ctx.obj["config"] = cfg
        setup_logging(
            level="DEBUG" if verbose else cfg.logging.level,
            log_file=cfg.logging.file
        )
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Create a config file from config/config.example.yaml")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def login(ctx):
    """Test the portal login handshake"""
    cfg = ctx.obj["config"]

    async def run():
        console.print(Panel("🔐 Testing Portal Login", style="blue"))
        async with AptusBot(cfg) as bot:
            result = await bot.auth.login(cfg.credentials.username, cfg.credentials.password)
            if result:
                await result.session.aclose()
                console.print(f"[green]✓ {result.status}[/green] (redirects: {result.redirects})")
            else:
                console.print(f"[red]✗ {result.reason.value}: {result.status}[/red]")
                sys.exit(1)

    asyncio.run(run())


@cli.command()
@click.option("--date", "start", default=None, help="Week start (any parseable date, default: this Monday)")
@click.pass_context
def slots(ctx, start):
    """Scrape one calendar week and print it (does not touch the store)"""
    cfg = ctx.obj["config"]
    start_date = _date_option(start) or cfg.sync.current_monday()

    async def run():
        async with AptusBot(cfg) as bot:
            result = await bot.auth.login(cfg.credentials.username, cfg.credentials.password)
            if not result:
                console.print(f"[red]Login failed: {result.status}[/red]")
                sys.exit(1)
            async with result.session as session:
                scrape = await bot.scraper.fetch_slots(session, start_date, cfg.portal.booking_group_id)

        if scrape.is_auth_lost:
            console.print("[red]Portal served the login page instead of the calendar[/red]")
            sys.exit(1)

        table = Table(title=f"Calendar from {start_date}")
        table.add_column("Date")
        table.add_column("Pass")
        table.add_column("Time")
        table.add_column("Status")
        for slot in scrape.slots:
            style = STATUS_STYLES[slot.status]
            table.add_row(
                slot.date.isoformat(),
                str(slot.pass_no),
                bot.schedule.label(slot.pass_no, slot.date),
                f"[{style}]{slot.status.value}[/{style}]",
            )
        console.print(table)

    asyncio.run(run())


@cli.command()
@click.pass_context
def sync(ctx):
    """Run a single sync cycle"""
    cfg = ctx.obj["config"]

    async def run():
        async with AptusBot(cfg) as bot:
            report = await bot.sync.run_cycle()

        if report.aborted:
            console.print(Panel(f"[bold red]❌ Aborted[/bold red]\n\n{report.error_message}", style="red"))
            sys.exit(1)

        console.print(Panel(
            f"Weeks scraped: {len(report.weeks_scraped)}\n"
            f"Weeks skipped: {len(report.weeks_skipped)}\n"
            f"Slots seen: {report.slots_seen}\n"
            f"Freed: {len(report.freed)}",
            title="🔄 Sync complete",
            style="green"
        ))
        for transition in report.freed:
            console.print(f"  [green]free[/green] {transition.key}")

    asyncio.run(run())


@cli.command("run")
@click.option("--max-runs", type=int, default=None, help="Stop after this many cycles")
@click.pass_context
def run_forever(ctx, max_runs):
    """Poll the portal on the configured interval (and run the Telegram bot)"""
    cfg = ctx.obj["config"]

    async def run():
        console.print(Panel(
            f"⏰ Polling every {cfg.sync.poll_interval_seconds}s, "
            f"{cfg.sync.weeks} week(s) ahead\n\n"
            f"Press Ctrl+C to stop",
            style="blue"
        ))
        async with AptusBot(cfg) as bot:
            await bot.run(max_runs=max_runs)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")


@cli.command()
@click.argument("pass_date")
@click.argument("pass_no", type=int)
@click.pass_context
def book(ctx, pass_date, pass_no):
    """Book PASS_NO on PASS_DATE (the store must list it as free)"""
    cfg = ctx.obj["config"]
    day = parse_date(pass_date)

    async def run():
        async with AptusBot(cfg) as bot:
            result = await bot.booking.book(day, pass_no)
            label = bot.schedule.label(pass_no, day)

        if result:
            console.print(Panel(
                f"[bold green]📅 Slot booked![/bold green]\n\nDate: {day}\nTime: {label}",
                style="green"
            ))
        else:
            console.print(Panel(f"[bold red]❌ Failed[/bold red]\n\n{result.message}", style="red"))
            sys.exit(1)

    asyncio.run(run())


@cli.command()
@click.argument("booking_id", type=int)
@click.pass_context
def cancel(ctx, booking_id):
    """Cancel a booking by its portal booking id"""
    cfg = ctx.obj["config"]

    async def run():
        async with AptusBot(cfg) as bot:
            result = await bot.booking.cancel(booking_id)

        if result:
            console.print(f"[green]✓ {result.message}[/green]")
        else:
            console.print(f"[red]✗ {result.message}[/red]")
            sys.exit(1)

    asyncio.run(run())


@cli.command()
@click.option("--date", "start", default=None, help="Any day of the week to show (default: current week)")
@click.option("--free-only", is_flag=True, help="Only list free passes")
@click.pass_context
def week(ctx, start, free_only):
    """Show a stored week, as last synced"""
    cfg = ctx.obj["config"]
    start_date = _date_option(start) or cfg.sync.current_monday()

    async def run():
        async with AptusBot(cfg) as bot:
            return bot.booking.week_view(start_date, free_only=free_only)

    view = asyncio.run(run())

    table = Table(title=f"Week {view.current_week} ({view.pass_date})")
    table.add_column("Day", style="cyan")
    table.add_column("Passes")
    for day in view.week_days:
        cells = []
        for slot in day.slots:
            style = STATUS_STYLES[slot.status]
            cells.append(f"[{style}]{slot.time} (#{slot.pass_no})[/{style}]")
        table.add_row(f"{day.day_name} {day.date}", "\n".join(cells) or "-")
    console.print(table)
    console.print(f"Previous: {view.prev_week_date}  Next: {view.next_week_date}")


@cli.command()
@click.pass_context
def info(ctx):
    """Show current configuration"""
    cfg = ctx.obj["config"]

    console.print(Panel("📋 Current Configuration", style="blue"))

    table = Table(show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Portal", cfg.portal.base_url)
    table.add_row("Username", cfg.credentials.username)
    table.add_row("Booking Group", str(cfg.portal.booking_group_id))
    table.add_row("Weeks Ahead", str(cfg.sync.weeks))
    table.add_row("Poll Interval", f"{cfg.sync.poll_interval_seconds}s")
    table.add_row("Timezone", cfg.sync.timezone)
    table.add_row("Store", cfg.storage.path or "in-memory")
    table.add_row("Webhook", "on" if cfg.notifications.webhook.enabled else "off")
    table.add_row("Telegram", "on" if cfg.notifications.telegram.enabled else "off")

    console.print(table)


if __name__ == "__main__":
    cli()
