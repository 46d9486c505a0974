"""``qualitygate classify LOG`` — classify a captured tool log.

Useful for output captured elsewhere (CI logs, ``cargo clippy 2> log``):
prints each recognised diagnostic with its severity tier.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from qualitygate.core.classifier import IssueClassifier
from qualitygate.models.issues import SeverityTier

console = Console()


def classify_cmd(
    log_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Captured tool output to classify.",
    ),
) -> None:
    """Classify every diagnostic in a captured log by severity tier."""
    lines = log_file.read_text(encoding="utf-8", errors="replace").splitlines()
    issues = IssueClassifier().classify_lines(lines)

    if not issues:
        console.print("[green]No diagnostics found.[/green]")
        return

    table = Table(title=f"Diagnostics in {escape(str(log_file))}", header_style="bold cyan")
    table.add_column("Severity")
    table.add_column("Rule", style="cyan")
    table.add_column("Location")
    table.add_column("Message")
    for issue in issues:
        table.add_row(
            issue.severity.value,
            escape(issue.rule_id or issue.level),
            escape(str(issue.location)) if issue.location else "[dim]-[/dim]",
            escape(issue.message),
        )
    console.print(table)

    tally = Counter(i.severity for i in issues)
    console.print(
        "  |  ".join(f"{tier.value}: {tally.get(tier, 0)}" for tier in SeverityTier)
    )
