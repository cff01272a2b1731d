#!/usr/bin/env python3
"""focus-timer CLI.

Terminal Pomodoro widget with daily completion stats.

Usage:
    focus-timer run                      # Idle widget, pick a preset with 1-4
    focus-timer run --minutes 25         # Start a 25 minute session right away
    focus-timer run --policy choice      # Continue-or-break choice after each session
    focus-timer stats                    # Daily records, newest first
    focus-timer stats --json             # Raw persisted records
    focus-timer info                     # Resolved configuration
"""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import date
from typing import Optional

import click
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import POLICY_CHOICES, TimerConfig, get_config
from .controller import SessionController
from .cues import Chime, DesktopNotifier
from .engine import DURATION_PRESETS, BreakPolicy, SessionEngine, SessionPhase
from .log_buffer import configure_logging, recent_logs
from .records import RecordBook
from .store import KeyValueStore, SqliteStore, load_records
from .ticker import Ticker

console = Console()

PRESET_KEYS = {str(i + 1): minutes for i, minutes in enumerate(DURATION_PRESETS)}

PHASE_LABELS = {
    SessionPhase.IDLE: ("Ready", "dim"),
    SessionPhase.WORKING: ("Working", "bold green"),
    SessionPhase.AWAITING_CHOICE: ("Session complete!", "bold cyan"),
    SessionPhase.CONTINUING: ("Continuing", "bold magenta"),
    SessionPhase.BREAK: ("Break", "bold yellow"),
}

PHASE_HINTS = {
    SessionPhase.IDLE: "  ".join(f"[cyan]{k}[/cyan] {m}m" for k, m in PRESET_KEYS.items()),
    SessionPhase.WORKING: "[cyan]g[/cyan] give up  [cyan]r[/cyan] reset",
    SessionPhase.AWAITING_CHOICE: "[cyan]c[/cyan] continue  [cyan]b[/cyan] break  [cyan]g[/cyan] give up",
    SessionPhase.CONTINUING: "[cyan]b[/cyan] break  [cyan]g[/cyan] give up  [cyan]r[/cyan] reset",
    SessionPhase.BREAK: "[cyan]r[/cyan] reset",
}

_LEVEL_STYLES = {"ERROR": "bold red", "WARNING": "yellow", "INFO": "green", "DEBUG": "dim"}


def _today() -> str:
    return date.today().isoformat()


def build_controller(config: TimerConfig, scheduler: AsyncIOScheduler, store: KeyValueStore) -> SessionController:
    """Wire a controller from configuration."""
    engine = SessionEngine(policy=config.break_policy, break_minutes=config.break_minutes)
    return SessionController(
        engine=engine,
        ticker=Ticker(scheduler),
        chime=Chime(enabled=config.chime, sound_command=config.sound_command),
        notifier=DesktopNotifier(enabled=config.notifications),
        store=store,
    )


def handle_key(controller: SessionController, key: str) -> bool:
    """Dispatch one keypress. Returns False when the user asked to quit."""
    key = key.lower()
    if key == "q":
        return False
    if key in PRESET_KEYS:
        controller.start(PRESET_KEYS[key])
    elif key == "c":
        controller.choose_continue()
    elif key == "b":
        controller.choose_break()
    elif key == "g":
        controller.give_up()
    elif key == "r":
        controller.reset()
    return True


def render_widget(controller: SessionController, today: Optional[str] = None) -> Panel:
    """Build the live timer panel."""
    engine = controller.engine
    label, style = PHASE_LABELS[engine.phase]

    clock = Text(engine.clock_text, style=style if engine.active else "dim", justify="center")

    summary = controller.records.summary(today or _today())
    stats = Text.from_markup(
        f"[dim]Today:[/dim] {summary.today_count} ({summary.today_minutes}m)  "
        f"[dim]Total:[/dim] {summary.total_count}"
    )

    log_lines = Text()
    for entry in recent_logs(3):
        level_style = _LEVEL_STYLES.get(entry["level"], "white")
        log_lines.append(f"{entry['timestamp']} ", style="dim")
        log_lines.append(f"{entry['message']}\n", style=level_style)

    body = Group(
        Text(label, style=style, justify="center"),
        clock,
        Text(""),
        Text.from_markup(PHASE_HINTS[engine.phase] + "  [cyan]q[/cyan] quit", justify="center"),
        Text(""),
        stats,
        log_lines,
    )
    policy = "auto-break" if engine.policy == BreakPolicy.AUTO else "choice"
    return Panel(body, title="focus-timer", subtitle=policy, box=box.ROUNDED, width=52)


def _records_table(records: RecordBook, limit: int) -> Table:
    table = Table(box=box.ROUNDED, title="Daily records", header_style="bold cyan")
    table.add_column("Date")
    table.add_column("Sessions", justify="right")
    table.add_column("Minutes", justify="right")
    for record in records.recent(limit):
        table.add_row(record.date, str(record.count), str(record.total_minutes))
    return table


async def _run_widget(config: TimerConfig, minutes: Optional[int]) -> None:
    import termios
    import tty

    loop = asyncio.get_running_loop()
    scheduler = AsyncIOScheduler()
    scheduler.start()
    store = SqliteStore(config.db_path)
    controller = build_controller(config, scheduler, store)
    controller.load()

    quit_event = asyncio.Event()
    fd = sys.stdin.fileno()
    original_terminal_settings = termios.tcgetattr(fd)

    try:
        tty.setcbreak(fd)
        with Live(render_widget(controller), console=console, refresh_per_second=4, transient=False) as live:

            def refresh(_state=None) -> None:
                live.update(render_widget(controller))

            def on_key() -> None:
                key = sys.stdin.read(1)
                if not key or not handle_key(controller, key):
                    quit_event.set()
                refresh()

            controller.add_listener(refresh)
            loop.add_reader(fd, on_key)
            if minutes:
                controller.start(minutes)
            try:
                await quit_event.wait()
            finally:
                loop.remove_reader(fd)
    finally:
        controller.close()
        controller.ticker.shutdown()
        store.close()
        # Restore terminal settings (critical for Ctrl+C cleanup)
        termios.tcsetattr(fd, termios.TCSADRAIN, original_terminal_settings)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """focus-timer - Pomodoro sessions with daily completion stats."""
    config = get_config()
    if verbose:
        config.verbose = True
    configure_logging(config.verbose)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.option("--minutes", "-m", type=click.IntRange(min=1), help="Start a work session of this length immediately.")
@click.option("--policy", type=click.Choice(sorted(POLICY_CHOICES)), help="What happens when a session completes.")
@click.option("--break-minutes", type=click.IntRange(min=1), help="Break length in minutes.")
@click.option("--no-chime", is_flag=True, help="Disable the chime.")
@click.option("--no-notify", is_flag=True, help="Disable desktop notifications.")
@click.pass_context
def run(ctx, minutes, policy, break_minutes, no_chime, no_notify):
    """Run the interactive timer widget."""
    if not sys.stdin.isatty():
        raise click.ClickException("run needs an interactive terminal")

    config: TimerConfig = ctx.obj["config"].with_overrides(
        policy=policy,
        break_minutes=break_minutes,
        chime=False if no_chime else None,
        notifications=False if no_notify else None,
    )
    try:
        asyncio.run(_run_widget(config, minutes))
    except KeyboardInterrupt:
        pass
    console.print("[dim]Goodbye![/dim]")


@cli.command()
@click.option("--limit", "-n", type=click.IntRange(min=1), default=7, show_default=True, help="Days to show.")
@click.option("--json", "as_json", is_flag=True, help="Print the persisted records as JSON.")
@click.pass_context
def stats(ctx, limit, as_json):
    """Show daily completion records."""
    config: TimerConfig = ctx.obj["config"]
    with SqliteStore(config.db_path) as store:
        records = RecordBook(load_records(store))

    if as_json:
        click.echo(json.dumps(records.to_list(), indent=2))
        return

    if not len(records):
        console.print("[yellow]No completed sessions yet.[/yellow]")
        return

    summary = records.summary(_today())
    console.print(_records_table(records, limit))
    console.print(
        f"Today: [bold]{summary.today_count}[/bold] session(s), {summary.today_minutes} min  |  "
        f"All time: [bold]{summary.total_count}[/bold] session(s), {summary.total_minutes} min "
        f"over {summary.days} day(s)"
    )


@cli.command()
@click.pass_context
def info(ctx):
    """Show resolved configuration."""
    config: TimerConfig = ctx.obj["config"]

    click.echo("focus-timer")
    click.echo("=" * 50)
    click.echo(f"Database:       {config.db_path}")
    click.echo(f"Break policy:   {config.policy}")
    click.echo(f"Break length:   {config.break_minutes} min")
    click.echo(f"Chime:          {'on' if config.chime else 'off'}")
    click.echo(f"Sound command:  {config.sound_command or 'auto-detect'}")
    click.echo(f"Notifications:  {'on' if config.notifications else 'off'}")
    click.echo(f"Presets:        {', '.join(str(m) for m in DURATION_PRESETS)} min")


def main() -> None:
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
