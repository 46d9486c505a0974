"""Result aggregator — folds stage results into an immutable Report.

A ``ReportBuilder`` belongs to exactly one run (or, in parallel mode, one
module worker).  It only ever appends; the frozen ``Report`` is produced
once by ``finalize()``.  Tallies and the verdict are derived from the
results by the ``Report`` itself, so there is nothing to keep in sync.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from qualitygate.models.reports import Report
from qualitygate.models.stages import StageResult, StageStatus

logger = logging.getLogger(__name__)


class ReportFinalizedError(RuntimeError):
    """Raised when a result is added to a builder that has been finalized."""


class ReportBuilder:
    """Accumulates results in execution order.

    Parameters
    ----------
    strict:
        Whether strict-eligible warnings escalate to failures.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self.strict = strict
        self._results: list[StageResult] = []
        self._aborted_at: str | None = None
        self._finalized = False

    @property
    def results(self) -> tuple[StageResult, ...]:
        return tuple(self._results)

    @property
    def aborted_at(self) -> str | None:
        return self._aborted_at

    @property
    def halted(self) -> bool:
        return self._aborted_at is not None

    def add(self, result: StageResult) -> bool:
        """Fold *result* in.  Returns ``False`` when the run must stop."""
        if self._finalized:
            raise ReportFinalizedError("Cannot add results to a finalized report.")
        if self.halted:
            raise ReportFinalizedError(
                f"Run already halted at stage {self._aborted_at!r}; "
                f"refusing result for {result.name!r}."
            )

        self._results.append(result)

        if result.halts_pipeline:
            self._aborted_at = result.name
            logger.warning(
                "Stage %s failed (%s); stopping remaining stages.",
                result.name,
                result.reason.value if result.reason else "fail",
            )
            return False
        if result.status == StageStatus.FAIL:
            logger.info("Stage %s failed; continuing as configured.", result.name)
        return True

    def append_policy(self, result: StageResult) -> None:
        """Append the virtual policy stage, even after a fail-fast halt."""
        if self._finalized:
            raise ReportFinalizedError("Cannot add results to a finalized report.")
        self._results.append(result)

    def finalize(
        self,
        *,
        not_attempted: Iterable[str] = (),
        cancelled: bool = False,
    ) -> Report:
        """Freeze the accumulated results into a ``Report``."""
        self._finalized = True
        report = Report(
            results=tuple(self._results),
            not_attempted=tuple(not_attempted),
            strict=self.strict,
            cancelled=cancelled,
            aborted_at=self._aborted_at,
        )
        logger.info(
            "Report finalized: %d stage(s), verdict=%s.",
            report.attempted_count,
            report.verdict.value,
        )
        return report


def merge_reports(
    partials: Sequence[tuple[str, Report]],
    module_order: Sequence[str],
    *,
    strict: bool,
    policy: StageResult | None = None,
    cancelled: bool = False,
) -> Report:
    """Combine per-module partial reports into one.

    Partials are ordered by the position of their module in
    *module_order*, never by completion time, so the merged report is the
    same on every run.  Within a partial, result order is preserved.
    Not-attempted entries are qualified as ``module:stage``.
    """
    rank = {module: i for i, module in enumerate(module_order)}
    ordered = sorted(partials, key=lambda item: rank.get(item[0], len(rank)))

    results: list[StageResult] = []
    not_attempted: list[str] = []
    aborted_at: str | None = None
    for module, partial in ordered:
        results.extend(partial.results)
        not_attempted.extend(f"{module}:{name}" for name in partial.not_attempted)
        if aborted_at is None and partial.aborted_at is not None:
            aborted_at = f"{module}:{partial.aborted_at}"
        cancelled = cancelled or partial.cancelled

    if policy is not None:
        results.append(policy)

    return Report(
        results=tuple(results),
        not_attempted=tuple(not_attempted),
        strict=strict,
        cancelled=cancelled,
        aborted_at=aborted_at,
    )
