"""``qualitygate run`` — execute the quality gate.

Runs every registered stage (or the ``--stage`` subset) in order, renders
the report and exits with the verdict's code:

    0  clean, or warnings tolerated in lenient mode
    1  a stage failed, a strict-eligible warning under --strict,
       or an unjustified suppression
    2  configuration error (nothing was run)
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from qualitygate.cli.commands._common import directory_source
from qualitygate.config import GateSettings
from qualitygate.core.executor import StageExecutor, ToolResolver
from qualitygate.core.pipeline import GatePipeline
from qualitygate.core.registry import discover_registry
from qualitygate.models.config import RunOptions
from qualitygate.reporting.renderer import (
    EXIT_CONFIG_ERROR,
    ReportRenderer,
    exit_code_for,
)
from qualitygate.reporting.sink import ReportFileSink

console = Console()


def run_cmd(
    stage: Optional[List[str]] = typer.Option(
        None,
        "--stage",
        "-s",
        help="Run only this stage (repeatable). Default: all stages.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Escalate warnings from strict-eligible stages to failures.",
    ),
    keep_going: bool = typer.Option(
        False,
        "--continue",
        "-k",
        help="Keep running stages after a failure.",
    ),
    module: Optional[List[str]] = typer.Option(
        None,
        "--module",
        "-m",
        help="Check this module separately (repeatable); fills {module} in invocations.",
    ),
    jobs: int = typer.Option(
        1,
        "--jobs",
        "-j",
        min=1,
        help="Modules to check concurrently.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-stage timeout in seconds (stages may set their own).",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Stage registry TOML file.",
    ),
    source: Optional[List[Path]] = typer.Option(
        None,
        "--source",
        help="Source root to scan for suppressions (repeatable).",
    ),
    policy: bool = typer.Option(
        True,
        "--policy/--no-policy",
        help="Enforce the suppression justification policy.",
    ),
    report_file: Optional[Path] = typer.Option(
        None,
        "--report-file",
        "-o",
        help="Also write the report here (.json for structured output).",
    ),
    project_dir: Path = typer.Option(
        Path("."),
        "--project-dir",
        "-C",
        help="Directory the tools run in.",
    ),
) -> None:
    """Run the quality gate and exit with its verdict."""
    try:
        settings = GateSettings()
        registry = discover_registry(project_dir, config_file or settings.registry_path)
        options = RunOptions(
            strict=strict or settings.strict,
            continue_on_failure=keep_going,
            stages=tuple(stage or ()),
            modules=tuple(module or ()),
            jobs=min(jobs, settings.max_workers) if module else jobs,
            timeout_seconds=timeout,
            enforce_policy=policy,
        )
        executor = StageExecutor(
            ToolResolver(settings.tool_paths),
            default_timeout=settings.default_timeout_seconds,
            cwd=project_dir,
        )
        pipeline = GatePipeline(
            registry,
            executor=executor,
            sources=directory_source(project_dir, settings, source) if policy else None,
        )
        pipeline.plan(options)
    except ValueError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    report = pipeline.run(options)

    ReportRenderer(console=console).print_report(report)
    if report.cancelled:
        console.print("[bold red]Run cancelled; remaining stages were not attempted.[/bold red]")
    if report_file is not None:
        written = ReportFileSink(report_file).accept(report)
        console.print(f"[dim]Report written to {written}[/dim]")

    raise typer.Exit(code=exit_code_for(report))
