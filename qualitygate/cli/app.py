"""Main Typer application — imports and registers all CLI commands.

Entry point: ``qualitygate`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from qualitygate.cli.commands.classify import classify_cmd
from qualitygate.cli.commands.run import run_cmd
from qualitygate.cli.commands.stages import stages_cmd
from qualitygate.cli.commands.suppressions import suppressions_cmd
from qualitygate.config import GateSettings

app = typer.Typer(
    name="qualitygate",
    help="qualitygate: ordered quality-gate pipeline over external checking tools.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Run the quality gate.")(run_cmd)
app.command(name="stages", help="List the registered stages.")(stages_cmd)
app.command(name="suppressions", help="Check suppression annotations for justifications.")(
    suppressions_cmd
)
app.command(name="classify", help="Classify diagnostics in a captured log.")(classify_cmd)


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: QUALITYGATE_LOG_LEVEL or WARNING).",
    ),
) -> None:
    """Configure logging before any command runs."""
    if log_level is None:
        try:
            log_level = GateSettings().log_level
        except ValueError:
            # Commands report malformed settings themselves.
            log_level = "WARNING"
    configure_logging(log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
