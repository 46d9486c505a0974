"""Rich terminal renderer for gate reports.

Turns a finalized ``Report`` into a stage table, totals by status and
severity, and the verdict.  Output depends only on the report (no clocks,
no completion order), so the same report always renders the same way.
Rendering never modifies the report.

Color scheme
------------
- green     : PASS / CLEAN
- yellow    : WARN
- red       : FAIL
- dim       : SKIPPED / not attempted
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from qualitygate.models.issues import Issue, SeverityTier
from qualitygate.models.reports import Report, Verdict
from qualitygate.models.stages import StageResult, StageStatus

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


# ---------------------------------------------------------------------------
# Status -> Rich style mapping
# ---------------------------------------------------------------------------

_STATUS_LABELS: dict[StageStatus, str] = {
    StageStatus.PASS: "[green]PASS[/green]",
    StageStatus.WARN: "[yellow]WARN[/yellow]",
    StageStatus.FAIL: "[bold red]FAIL[/bold red]",
    StageStatus.SKIPPED: "[dim]SKIPPED[/dim]",
}

_SEVERITY_STYLES: dict[SeverityTier, str] = {
    SeverityTier.CRITICAL: "bold red",
    SeverityTier.MODERATE: "yellow",
    SeverityTier.STYLE: "cyan",
}

_VERDICT_STYLES: dict[Verdict, str] = {
    Verdict.CLEAN: "bold green",
    Verdict.WARN: "bold yellow",
    Verdict.FAIL: "bold red",
}

_NOT_ATTEMPTED = "[dim]NOT ATTEMPTED[/dim]"


def exit_code_for(report: Report) -> int:
    """Map the verdict to a process exit code.

    Strict-mode promotion is already part of the verdict, so WARN here
    means a tolerated warning.
    """
    return EXIT_FAILURE if report.verdict == Verdict.FAIL else EXIT_OK


def _detail(result: StageResult, report: Report) -> str:
    parts: list[str] = []
    if result.reason is not None:
        parts.append(result.reason.value.replace("_", " "))
    if result.exit_code not in (None, 0):
        parts.append(f"exit {result.exit_code}")
    if report.strict and result.escalates_under_strict:
        parts.append("escalated (strict)")
    if result.status == StageStatus.SKIPPED:
        parts.append("tool not installed")
    return ", ".join(parts)


def _issue_summary(result: StageResult) -> str:
    if not result.issues:
        return "-"
    critical = sum(1 for i in result.issues if i.severity == SeverityTier.CRITICAL)
    summary = str(len(result.issues))
    if critical:
        summary += f" ({critical} critical)"
    return summary


def _issue_line(issue: Issue) -> str:
    location = str(issue.location) if issue.location else "-"
    rule = issue.rule_id or issue.level
    return f"{issue.severity.value:<8} {rule}  {location}  {issue.message}"


class ReportRenderer:
    """Renders ``Report`` as Rich terminal output or plain text.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    max_issues:
        Issues listed per stage below the table; 0 disables the listing.
    """

    def __init__(self, console: Console | None = None, *, max_issues: int = 20) -> None:
        self.console = console or Console()
        self.max_issues = max_issues

    # ------------------------------------------------------------------
    # Rich rendering
    # ------------------------------------------------------------------

    def render(self, report: Report) -> Panel:
        """Render the report as a Rich Panel."""
        parts: list = [self._build_stage_table(report)]

        issue_lines = self._issue_lines(report)
        if issue_lines:
            parts.append(Text(""))
            parts.extend(issue_lines)

        counts = report.status_counts
        severities = report.severity_counts
        parts.append(Text(""))
        parts.append(
            Text.from_markup(
                "  |  ".join(
                    [
                        f"[green]Pass:[/green] {counts[StageStatus.PASS]}",
                        f"[yellow]Warn:[/yellow] {counts[StageStatus.WARN]}",
                        f"[red]Fail:[/red] {counts[StageStatus.FAIL]}",
                        f"[dim]Skipped:[/dim] {counts[StageStatus.SKIPPED]}",
                        f"[dim]Not attempted:[/dim] {len(report.not_attempted)}",
                    ]
                )
            )
        )
        parts.append(
            Text.from_markup(
                "  |  ".join(
                    f"[{_SEVERITY_STYLES[tier]}]{tier.value.title()}:"
                    f"[/{_SEVERITY_STYLES[tier]}] {severities[tier]}"
                    for tier in SeverityTier
                )
            )
        )

        verdict_style = _VERDICT_STYLES[report.verdict]
        mode = "strict" if report.strict else "lenient"
        return Panel(
            Group(*parts),
            title="[bold]Quality Gate[/bold]",
            subtitle=(
                f"[{verdict_style}]Verdict: {report.verdict.value.upper()}"
                f"[/{verdict_style}] ({mode})"
            ),
            border_style=verdict_style.split()[-1],
            padding=(1, 2),
        )

    def _build_stage_table(self, report: Report) -> Table:
        show_module = any(r.module for r in report.results)
        table = Table(show_header=True, header_style="bold cyan", expand=True)

        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Stage", min_width=20)
        if show_module:
            table.add_column("Module")
        table.add_column("Status", min_width=14, justify="center")
        table.add_column("Issues", justify="right")
        table.add_column("Detail", min_width=16)

        for i, result in enumerate(report.results, start=1):
            row = [str(i), escape(result.stage.label)]
            if show_module:
                row.append(escape(result.module or "-"))
            row.extend(
                [
                    _STATUS_LABELS[result.status],
                    _issue_summary(result),
                    escape(_detail(result, report)) or "[dim]-[/dim]",
                ]
            )
            table.add_row(*row)

        for name in report.not_attempted:
            row = ["", f"[dim]{escape(name)}[/dim]"]
            if show_module:
                row.append("")
            row.extend([_NOT_ATTEMPTED, "", ""])
            table.add_row(*row)

        return table

    def _issue_lines(self, report: Report) -> list[Text]:
        if self.max_issues <= 0:
            return []
        lines: list[Text] = []
        for result in report.results:
            if not result.issues:
                continue
            header = result.stage.label + (f" [{result.module}]" if result.module else "")
            lines.append(Text(header, style="bold"))
            for issue in result.issues[: self.max_issues]:
                lines.append(
                    Text("  " + _issue_line(issue), style=_SEVERITY_STYLES[issue.severity])
                )
            hidden = len(result.issues) - self.max_issues
            if hidden > 0:
                lines.append(Text(f"  ... {hidden} more", style="dim"))
        return lines

    def print_report(self, report: Report) -> None:
        """Print a single report to the console."""
        self.console.print(self.render(report))

    # ------------------------------------------------------------------
    # Plain text
    # ------------------------------------------------------------------

    def render_text(self, report: Report) -> str:
        """Render the report as plain, markup-free text."""
        mode = "strict" if report.strict else "lenient"
        out: list[str] = [f"Quality gate report ({mode})"]

        for result in report.results:
            name = result.name + (f" [{result.module}]" if result.module else "")
            line = f"  {result.status.value.upper():<8} {name}"
            detail = _detail(result, report)
            if result.issues:
                line += f"  issues={len(result.issues)}"
            if detail:
                line += f"  ({detail})"
            out.append(line)
            for issue in result.issues:
                out.append(f"      {_issue_line(issue)}")

        for name in report.not_attempted:
            out.append(f"  {'-':<8} {name}  (not attempted)")

        counts = report.status_counts
        severities = report.severity_counts
        out.append(
            "Totals: "
            + " ".join(f"{status.value}={counts[status]}" for status in StageStatus)
            + f" not_attempted={len(report.not_attempted)}"
        )
        out.append(
            "Severity: "
            + " ".join(f"{tier.value}={severities[tier]}" for tier in SeverityTier)
        )
        out.append(f"Verdict: {report.verdict.value.upper()}")
        return "\n".join(out)
