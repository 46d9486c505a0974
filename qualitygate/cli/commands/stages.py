"""``qualitygate stages`` — show the stage registry."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from qualitygate.config import GateSettings
from qualitygate.core.executor import ToolResolver
from qualitygate.core.registry import discover_registry
from qualitygate.reporting.renderer import EXIT_CONFIG_ERROR

console = Console()


def _flag(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


def stages_cmd(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Stage registry TOML file.",
    ),
    project_dir: Path = typer.Option(
        Path("."),
        "--project-dir",
        "-C",
        help="Project directory to discover the registry in.",
    ),
) -> None:
    """List the registered stages in execution order."""
    try:
        settings = GateSettings()
        registry = discover_registry(project_dir, config_file or settings.registry_path)
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    resolver = ToolResolver(settings.tool_paths)

    table = Table(title="Quality Gate Stages", header_style="bold cyan")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Stage", style="cyan")
    table.add_column("Category")
    table.add_column("Invocation")
    table.add_column("Continue", justify="center")
    table.add_column("Strict", justify="center")
    table.add_column("Optional", justify="center")
    table.add_column("Tool", justify="center")

    for i, stage in enumerate(registry, start=1):
        tool = stage.tool or (stage.invocation[0] if stage.invocation else "")
        if not tool:
            found = "[dim]-[/dim]"
        elif resolver.is_available(tool):
            found = "[green]found[/green]"
        elif stage.optional:
            found = "[yellow]absent[/yellow]"
        else:
            found = "[bold red]missing[/bold red]"
        table.add_row(
            str(i),
            escape(stage.name),
            stage.category.value,
            escape(" ".join(stage.invocation)),
            _flag(stage.continue_on_failure),
            _flag(stage.strict_eligible),
            _flag(stage.optional),
            found,
        )

    console.print(table)
