"""Unit tests for the ReportBuilder and merge_reports."""

from __future__ import annotations

import pytest

from qualitygate.core.aggregator import ReportBuilder, ReportFinalizedError, merge_reports
from qualitygate.models.reports import Verdict
from qualitygate.models.stages import POLICY_STAGE, StageResult, StageStatus


class TestReportBuilder:

    def test_results_kept_in_order(self, make_result):
        builder = ReportBuilder()
        for name in ("check", "fmt", "clippy"):
            assert builder.add(make_result(name))

        report = builder.finalize()

        assert report.stage_names() == ["check", "fmt", "clippy"]
        assert report.verdict == Verdict.CLEAN

    def test_halting_failure_stops_the_run(self, make_result):
        builder = ReportBuilder()
        builder.add(make_result("check"))

        assert builder.add(make_result("clippy", StageStatus.FAIL)) is False
        assert builder.halted
        assert builder.aborted_at == "clippy"

    def test_continue_on_failure_keeps_going(self, make_descriptor, make_result):
        lenient = make_descriptor("fmt", continue_on_failure=True)
        builder = ReportBuilder()
        assert builder.add(make_result("fmt", StageStatus.FAIL, descriptor=lenient))
        assert not builder.halted

    def test_add_after_halt_rejected(self, make_result):
        builder = ReportBuilder()
        builder.add(make_result("check", StageStatus.FAIL))
        with pytest.raises(ReportFinalizedError, match="already halted"):
            builder.add(make_result("clippy"))

    def test_add_after_finalize_rejected(self, make_result):
        builder = ReportBuilder()
        builder.finalize()
        with pytest.raises(ReportFinalizedError):
            builder.add(make_result("check"))
        with pytest.raises(ReportFinalizedError):
            builder.append_policy(make_result("policy"))

    def test_policy_appended_after_halt(self, make_result):
        builder = ReportBuilder()
        builder.add(make_result("check", StageStatus.FAIL))
        builder.append_policy(StageResult(stage=POLICY_STAGE, status=StageStatus.PASS))

        report = builder.finalize(not_attempted=["clippy", "test"])

        assert report.stage_names() == ["check", "policy"]
        assert report.not_attempted == ("clippy", "test")
        assert report.aborted_at == "check"

    def test_counts_sum_to_attempted(self, make_descriptor, make_result):
        lenient = {"continue_on_failure": True}
        builder = ReportBuilder(strict=True)
        builder.add(make_result("check"))
        builder.add(make_result("fmt", StageStatus.FAIL, descriptor=make_descriptor("fmt", **lenient)))
        builder.add(make_result("clippy", StageStatus.WARN))
        builder.add(make_result("audit", StageStatus.SKIPPED))

        report = builder.finalize()

        assert sum(report.status_counts.values()) == report.attempted_count == 4
        assert report.strict

    def test_cancelled_flag_carried(self, make_result):
        builder = ReportBuilder()
        builder.add(make_result("check"))
        report = builder.finalize(not_attempted=["clippy"], cancelled=True)
        assert report.cancelled
        assert report.verdict == Verdict.FAIL


class TestMergeReports:

    def _partial(self, make_result, module, statuses, not_attempted=()):
        builder = ReportBuilder()
        for name, status in statuses:
            if not builder.add(make_result(name, status, module=module)):
                break
        return module, builder.finalize(not_attempted=not_attempted)

    def test_merged_by_module_order_not_completion_order(self, make_result):
        a = self._partial(make_result, "a", [("check", StageStatus.PASS)])
        b = self._partial(make_result, "b", [("check", StageStatus.WARN)])
        c = self._partial(make_result, "c", [("check", StageStatus.PASS)])

        report = merge_reports([c, a, b], ["a", "b", "c"], strict=False)

        assert [r.module for r in report.results] == ["a", "b", "c"]
        assert report.verdict == Verdict.WARN

    def test_not_attempted_and_abort_qualified_by_module(self, make_result):
        a = self._partial(make_result, "a", [("check", StageStatus.PASS), ("test", StageStatus.PASS)])
        b = self._partial(
            make_result, "b", [("check", StageStatus.FAIL)], not_attempted=("test",)
        )

        report = merge_reports([a, b], ["a", "b"], strict=False)

        assert report.not_attempted == ("b:test",)
        assert report.aborted_at == "b:check"
        assert report.verdict == Verdict.FAIL

    def test_policy_result_goes_last(self, make_result):
        a = self._partial(make_result, "a", [("check", StageStatus.PASS)])
        policy = StageResult(stage=POLICY_STAGE, status=StageStatus.PASS)

        report = merge_reports([a], ["a"], strict=True, policy=policy)

        assert report.stage_names() == ["check", "policy"]
        assert report.strict
