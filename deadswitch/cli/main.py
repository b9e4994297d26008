"""
DEADSWITCH CLI Main Entry Point

Typer application for running and checking the heartbeat monitor.
"""

import logging
from pathlib import Path
from typing import Annotated, NoReturn

import structlog
import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from deadswitch import __version__
from deadswitch.config import Settings, load_settings
from deadswitch.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)
console = Console()

app = typer.Typer(
    name="deadswitch",
    help="DEADSWITCH - dead man's switch heartbeat monitor",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and route structlog through it."""
    logging.basicConfig(level=level, format="%(message)s")
    # One "Added job" line per ping otherwise
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(
            Panel(
                Text.from_markup(
                    f"[bold cyan]DEADSWITCH[/bold cyan] v{__version__}\n"
                    "[dim]Dead man's switch heartbeat monitor[/dim]"
                ),
                title="Version",
                border_style="cyan",
            )
        )
        raise typer.Exit()


def _load_or_exit(config: Path | None, **overrides: object) -> Settings:
    """Load settings, printing the error and exiting on failure."""
    try:
        return load_settings(config, **overrides)
    except ConfigurationError as e:
        _fail(e)


def _fail(error: ConfigurationError) -> NoReturn:
    console.print(Panel(str(error), title="[bold red]Configuration error[/bold red]", border_style="red"))
    raise typer.Exit(code=1)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """
    DEADSWITCH - alert when services stop checking in.

    Services POST to /ping/<key>; a key that stays silent for longer than
    the configured timeout triggers an alert on every configured notifier.
    """


@app.command()
def serve(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML configuration file (default: ./deadswitch.yaml)."),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", help="Address to listen on."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port to listen on."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """Run the heartbeat monitor and its ping endpoint."""
    from deadswitch.api.main import create_app

    overrides = {name: value for name, value in (("host", host), ("port", port)) if value is not None}
    settings = _load_or_exit(config, **overrides)

    configure_logging("DEBUG" if verbose else settings.log_level)

    try:
        api = create_app(settings)
    except ConfigurationError as e:
        _fail(e)

    logger.info("Starting deadswitch", host=settings.host, port=settings.port, timeout=settings.timeout)
    uvicorn.run(api, host=settings.host, port=settings.port, log_config=None)


@app.command("check-config")
def check_config(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML configuration file (default: ./deadswitch.yaml)."),
    ] = None,
) -> None:
    """Validate configuration and show the notifier set."""
    from deadswitch.notifiers.factory import build_notifier_set

    settings = _load_or_exit(config)

    try:
        notifiers = build_notifier_set(settings)
    except ConfigurationError as e:
        _fail(e)

    table = Table(title="Notifiers", border_style="cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="white")
    table.add_column("Target", style="dim")

    for notifier in notifiers:
        table.add_row(notifier.name, notifier.kind.value, notifier.target or "-")

    console.print(f"[bold green]Configuration OK[/bold green]  timeout={settings.timeout}s  listen={settings.host}:{settings.port}")
    console.print(table)


if __name__ == "__main__":
    app()
