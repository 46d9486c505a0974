"""Unit tests for the ReportRenderer and exit code mapping."""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.panel import Panel

from qualitygate.models.issues import SeverityTier, SourceLocation
from qualitygate.models.reports import Report
from qualitygate.models.stages import FailureReason, StageStatus
from qualitygate.reporting.renderer import (
    EXIT_CONFIG_ERROR,
    EXIT_FAILURE,
    EXIT_OK,
    ReportRenderer,
    exit_code_for,
)


def _console() -> Console:
    return Console(file=StringIO(), width=160, color_system=None)


class TestExitCodes:

    def test_clean_exits_zero(self, make_result):
        assert exit_code_for(Report(results=(make_result("check"),))) == EXIT_OK

    def test_lenient_warning_exits_zero(self, make_result):
        report = Report(results=(make_result("check", StageStatus.WARN),))
        assert exit_code_for(report) == EXIT_OK

    def test_strict_warning_exits_one(self, make_descriptor, make_result):
        eligible = make_descriptor("clippy", strict_eligible=True)
        report = Report(
            results=(make_result("clippy", StageStatus.WARN, descriptor=eligible),),
            strict=True,
        )
        assert exit_code_for(report) == EXIT_FAILURE

    def test_failure_exits_one(self, make_result):
        report = Report(results=(make_result("check", StageStatus.FAIL),))
        assert exit_code_for(report) == EXIT_FAILURE

    def test_config_error_code_distinct(self):
        assert len({EXIT_OK, EXIT_FAILURE, EXIT_CONFIG_ERROR}) == 3


class TestReportRenderer:

    def _report(self, make_result, style_issue) -> Report:
        located = style_issue.model_copy(
            update={"location": SourceLocation(path="src/lib.rs", line=10, column=5)}
        )
        return Report(
            results=(
                make_result("check"),
                make_result("clippy", StageStatus.WARN, issues=(located,)),
                make_result(
                    "test", StageStatus.FAIL, exit_code=101, reason=FailureReason.NONZERO_EXIT
                ),
            ),
            not_attempted=("integration", "doc"),
            aborted_at="test",
        )

    def test_render_returns_panel(self, make_result, style_issue):
        panel = ReportRenderer(_console()).render(self._report(make_result, style_issue))
        assert isinstance(panel, Panel)

    def test_print_report_shows_stages_and_verdict(self, make_result, style_issue):
        console = _console()
        ReportRenderer(console).print_report(self._report(make_result, style_issue))
        output = console.file.getvalue()

        assert "clippy" in output
        assert "NOT ATTEMPTED" in output
        assert "integration" in output
        assert "Verdict: FAIL" in output
        assert "src/lib.rs:10:5" in output

    def test_render_text_is_deterministic(self, make_result, style_issue):
        report = self._report(make_result, style_issue)
        renderer = ReportRenderer()
        assert renderer.render_text(report) == renderer.render_text(report)

    def test_render_text_contents(self, make_result, style_issue):
        text = ReportRenderer().render_text(self._report(make_result, style_issue))
        lines = text.splitlines()

        assert lines[0] == "Quality gate report (lenient)"
        assert "  FAIL     test  (nonzero exit, exit 101)" in lines
        assert "  -        integration  (not attempted)" in lines
        assert "Totals: pass=1 warn=1 fail=1 skipped=0 not_attempted=2" in lines
        assert "Severity: critical=0 moderate=0 style=1" in lines
        assert lines[-1] == "Verdict: FAIL"

    def test_strict_escalation_noted(self, make_descriptor, make_result):
        eligible = make_descriptor("clippy", strict_eligible=True)
        report = Report(
            results=(make_result("clippy", StageStatus.WARN, descriptor=eligible),),
            strict=True,
        )
        text = ReportRenderer().render_text(report)
        assert "escalated (strict)" in text
        assert text.startswith("Quality gate report (strict)")

    def test_issue_listing_truncated(self, make_result, style_issue):
        issues = tuple(
            style_issue.model_copy(update={"message": f"finding {i}"}) for i in range(5)
        )
        report = Report(results=(make_result("clippy", StageStatus.WARN, issues=issues),))
        console = _console()
        ReportRenderer(console, max_issues=2).print_report(report)
        output = console.file.getvalue()

        assert "finding 1" in output
        assert "finding 2" not in output
        assert "3 more" in output

    def test_rendering_does_not_modify_report(self, make_result, style_issue):
        report = self._report(make_result, style_issue)
        before = report.model_dump()
        ReportRenderer(_console()).print_report(report)
        ReportRenderer().render_text(report)
        assert report.model_dump() == before

    def test_severity_counts_in_text(self, make_result, style_issue):
        critical = style_issue.model_copy(update={"severity": SeverityTier.CRITICAL})
        report = Report(results=(make_result("check", StageStatus.FAIL, issues=(critical,)),))
        assert "Severity: critical=1 moderate=0 style=0" in ReportRenderer().render_text(report)
