"""``qualitygate suppressions`` — audit suppression annotations only.

Scans the source roots and lists every suppression with its justification.
Exits 1 when any annotation has none, so it can run as a pre-commit hook.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from qualitygate.cli.commands._common import directory_source
from qualitygate.config import GateSettings
from qualitygate.core.suppressions import SuppressionEnforcer
from qualitygate.reporting.renderer import EXIT_CONFIG_ERROR, EXIT_FAILURE, EXIT_OK

console = Console()


def suppressions_cmd(
    source: Optional[List[Path]] = typer.Option(
        None,
        "--source",
        help="Source root to scan (repeatable). Default: QUALITYGATE_SOURCE_ROOTS.",
    ),
    show_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="List justified annotations too.",
    ),
    project_dir: Path = typer.Option(
        Path("."),
        "--project-dir",
        "-C",
        help="Directory relative source roots are resolved against.",
    ),
) -> None:
    """Check that every suppression annotation carries a justification."""
    try:
        settings = GateSettings()
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    enforcer = SuppressionEnforcer()
    annotations = enforcer.scan(directory_source(project_dir, settings, source))
    unjustified = [a for a in annotations if not a.is_justified]

    shown = annotations if show_all else unjustified
    if shown:
        table = Table(title="Suppression Annotations", header_style="bold cyan")
        table.add_column("Location")
        table.add_column("Rule", style="cyan")
        table.add_column("Justification")
        for annotation in shown:
            justification = (
                escape(annotation.justification)
                if annotation.is_justified
                else "[bold red]missing[/bold red]"
            )
            table.add_row(
                escape(str(annotation.location)),
                escape(annotation.rule_id),
                justification,
            )
        console.print(table)

    console.print(
        f"[bold]{len(annotations)}[/bold] annotation(s), "
        f"[bold red]{len(unjustified)}[/bold red] without justification."
    )
    raise typer.Exit(code=EXIT_FAILURE if unjustified else EXIT_OK)
