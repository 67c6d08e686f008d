#!/usr/bin/env python3
"""
keystroke-guard developer CLI

Inspect configured quotas, validate form payloads, sanitize text and
simulate bursts against the in-process rate limiter.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from logging_config import get_guard_logger, log_exception, log_startup_info
from security import ConfigError, SchemaError, SecurityGuard
from utils.config import Config, build_guard

__version__ = "1.0.0"


class GuardContext:
    """State shared between CLI commands."""

    def __init__(self, config: Config, debug: bool = False):
        self.config = config
        self.debug = debug
        self.console = Console()
        self.guard: SecurityGuard = build_guard(config)


# ---------------------------------------------------------------------------
# CLI commands
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON configuration file (overrides built-in defaults)",
)
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging to the console")
@click.option("--no-log-file", is_flag=True, default=False, help="Do not write rotating log files")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], debug: bool, no_log_file: bool) -> None:
    """keystroke-guard - rate limiting and input validation tools."""
    try:
        config = Config.from_env(config_path)
        debug = debug or bool(config.get("logging.debug", False))
        logger, _ = get_guard_logger(debug=debug, file_output=not no_log_file)
        log_startup_info(logger, "keystroke-guard CLI", __version__)
        ctx.obj = GuardContext(config, debug=debug)
    except (ConfigError, SchemaError) as exc:
        Console(stderr=True).print(f"[bold red]❌ Configuration error: {exc}[/bold red]")
        sys.exit(2)


@cli.command()
@click.pass_obj
def limits(state: GuardContext) -> None:
    """List configured rate-limit quotas."""
    table = Table(title="⏱ Rate-limit Quotas", box=box.ROUNDED)
    table.add_column("Action", style="bold yellow")
    table.add_column("Max attempts", justify="right")
    table.add_column("Window", justify="right")
    for action in state.guard.limiter.action_types:
        cfg = state.guard.limiter.get_config(action)
        table.add_row(action, str(cfg.max_attempts), _format_window(cfg.window_ms))
    state.console.print(table)


@cli.command()
@click.argument("form_json")
@click.pass_obj
def validate(state: GuardContext, form_json: str) -> None:
    """Validate a JSON object of form fields (inline JSON or @path/to/file.json)."""
    try:
        data = _load_form(form_json)
    except (OSError, json.JSONDecodeError, ValueError) as exc:
        state.console.print(f"[bold red]❌ Cannot parse form: {exc}[/bold red]")
        sys.exit(2)

    if state.guard.validate_form(data):
        state.console.print(f"[bold green]✅ All {len(data)} field(s) valid.[/bold green]")
        return

    table = Table(title="🚫 Validation Errors", box=box.ROUNDED, style="red")
    table.add_column("Field", style="bold white")
    table.add_column("Message", style="yellow")
    for field, message in sorted(state.guard.validation_errors.items()):
        table.add_row(field, message)
    state.console.print(table)
    sys.exit(1)


@cli.command()
@click.argument("text")
@click.pass_obj
def sanitize(state: GuardContext, text: str) -> None:
    """Print TEXT with markup and script vectors removed."""
    click.echo(state.guard.sanitize_input(text))


@cli.command()
@click.option("--action", "action_type", default="login", show_default=True, help="Action type to throttle")
@click.option("--identifier", default="demo-user", show_default=True, help="Subject being rate limited")
@click.option("--attempts", default=None, type=click.IntRange(min=1), help="Attempts to make (default: quota + 1)")
@click.pass_obj
def simulate(state: GuardContext, action_type: str, identifier: str, attempts: Optional[int]) -> None:
    """Fire a burst of attempts at the limiter and show each decision."""
    limiter = state.guard.limiter
    if action_type not in limiter.action_types:
        state.console.print(
            f"[bold red]❌ Unknown action '{action_type}'. Known: {', '.join(limiter.action_types)}[/bold red]"
        )
        sys.exit(2)

    quota = limiter.get_config(action_type).max_attempts
    attempts = attempts or quota + 1

    table = Table(title=f"🔁 {action_type} burst for {identifier}", box=box.ROUNDED)
    table.add_column("#", style="bold white", width=5)
    table.add_column("Decision")
    table.add_column("Remaining", justify="right")
    denied = 0
    for i in range(1, attempts + 1):
        allowed = state.guard.check_rate_limit(action_type, identifier)
        denied += 0 if allowed else 1
        decision = "[green]allowed[/green]" if allowed else "[red]denied[/red]"
        table.add_row(str(i), decision, str(limiter.get_remaining_attempts(identifier, action_type)))
    state.console.print(table)

    if denied:
        state.console.print(
            Panel(
                state.guard.retry_message(identifier, action_type),
                title="[bold red]Throttled[/bold red]",
                border_style="red",
                box=box.ROUNDED,
            )
        )
    if state.debug:
        state.console.print(state.guard.metrics.get_prometheus_format())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_form(raw: str) -> dict:
    if raw.startswith("@"):
        with open(raw[1:], encoding="utf-8") as fh:
            data = json.load(fh)
    else:
        data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("form must be a JSON object")
    return data


def _format_window(window_ms: int) -> str:
    seconds = window_ms / 1000
    if seconds >= 60 and seconds % 60 == 0:
        return f"{int(seconds // 60)} min"
    return f"{seconds:g} s"


def main() -> None:
    try:
        cli()
    except Exception as exc:  # pylint: disable=broad-except
        # Handlers were attached by cli() according to --no-log-file
        logger, error_logger = logging.getLogger("security"), logging.getLogger("guard_errors")
        log_exception(logger, error_logger, exc, context="keystroke-guard CLI")
        raise


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
