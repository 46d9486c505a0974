"""Report model — the immutable outcome of one gate run."""

from __future__ import annotations

from collections import Counter
from enum import Enum

from pydantic import BaseModel, ConfigDict, computed_field

from qualitygate.models.issues import SeverityTier
from qualitygate.models.stages import StageResult, StageStatus


class Verdict(str, Enum):
    """Single overall outcome of a run."""

    CLEAN = "clean"
    WARN = "warn"
    FAIL = "fail"


def compute_verdict(
    results: tuple[StageResult, ...] | list[StageResult],
    *,
    strict: bool,
    cancelled: bool = False,
) -> Verdict:
    """Fold stage results into a verdict.

    FAIL when any stage failed (the policy stage included), when strict
    mode is on and a strict-eligible stage warned, or when the run was
    cancelled.  WARN when any stage warned.  CLEAN otherwise.
    """
    if cancelled:
        return Verdict.FAIL
    if any(r.status == StageStatus.FAIL for r in results):
        return Verdict.FAIL
    if strict and any(r.escalates_under_strict for r in results):
        return Verdict.FAIL
    if any(r.status == StageStatus.WARN for r in results):
        return Verdict.WARN
    return Verdict.CLEAN


class Report(BaseModel):
    """Ordered stage results plus the derived tallies and verdict.

    Counts are computed from ``results`` on every access, so a report can
    never carry stale or double-counted tallies.
    """

    model_config = ConfigDict(frozen=True)

    results: tuple[StageResult, ...] = ()
    not_attempted: tuple[str, ...] = ()
    strict: bool = False
    cancelled: bool = False
    aborted_at: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status_counts(self) -> dict[StageStatus, int]:
        tally = Counter(r.status for r in self.results)
        return {status: tally.get(status, 0) for status in StageStatus}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def severity_counts(self) -> dict[SeverityTier, int]:
        tally = Counter(i.severity for r in self.results for i in r.issues)
        return {tier: tally.get(tier, 0) for tier in SeverityTier}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def verdict(self) -> Verdict:
        return compute_verdict(
            self.results, strict=self.strict, cancelled=self.cancelled
        )

    @property
    def attempted_count(self) -> int:
        return len(self.results)

    @property
    def issue_count(self) -> int:
        return sum(len(r.issues) for r in self.results)

    def result_for(self, name: str, module: str | None = None) -> StageResult | None:
        """Return the result for a stage (and module scope), if it ran."""
        for result in self.results:
            if result.name == name and result.module == module:
                return result
        return None

    def stage_names(self) -> list[str]:
        return [r.name for r in self.results]
