"""Gate pipeline — the central coordinator for a quality-gate run.

The pipeline wires the StageRegistry, StageExecutor, IssueClassifier,
ReportBuilder and SuppressionEnforcer into one run:

    registry (ordered) -> executor -> classifier -> builder
        -> enforcer (virtual ``policy`` stage) -> Report

Stages run strictly one after another.  When module scopes are given, each
module gets its own sequential stage run; with ``jobs > 1`` those runs
happen on a bounded thread pool and are merged afterwards by module order.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

from qualitygate.core.aggregator import ReportBuilder, merge_reports
from qualitygate.core.classifier import IssueClassifier
from qualitygate.core.executor import StageExecutor
from qualitygate.core.registry import ConfigurationError, StageRegistry
from qualitygate.core.suppressions import SourceProvider, SuppressionEnforcer
from qualitygate.models.config import RunOptions
from qualitygate.models.reports import Report
from qualitygate.models.stages import StageResult

logger = logging.getLogger(__name__)


class GatePipeline:
    """Runs a registry of stages and produces a ``Report``.

    Parameters
    ----------
    registry:
        The validated stage registry.
    executor:
        Stage executor.  A PATH-resolving executor is created if omitted.
    sources:
        Project source for the suppression enforcer, as ``(path, text)``
        pairs.  The policy stage is skipped entirely when ``None``.
    cancel_event:
        Shared cancellation signal; defaults to the executor's.
    """

    def __init__(
        self,
        registry: StageRegistry,
        *,
        executor: StageExecutor | None = None,
        classifier: IssueClassifier | None = None,
        enforcer: SuppressionEnforcer | None = None,
        sources: SourceProvider | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.registry = registry
        self.executor = executor or StageExecutor(cancel_event=cancel_event)
        self.classifier = classifier or IssueClassifier()
        self.enforcer = enforcer or SuppressionEnforcer()
        self.sources = sources
        self.cancel_event = cancel_event or self.executor.cancel_event
        # One signal for the whole run, shared with the executor.
        self.executor.cancel_event = self.cancel_event

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Abort the running stage and mark the rest not-attempted."""
        logger.warning("Cancellation requested.")
        self.cancel_event.set()

    def plan(self, options: RunOptions) -> StageRegistry:
        """Return the registry this run will execute.

        Raises ``ConfigurationError`` for an unknown stage selection or a
        repeated module scope.
        """
        if len(set(options.modules)) != len(options.modules):
            raise ConfigurationError(f"Duplicate module scope in {list(options.modules)}.")
        registry = self.registry.select(options.stages)
        if options.continue_on_failure:
            registry = registry.with_continue_override()
        if options.timeout_seconds:
            registry = registry.with_default_timeout(options.timeout_seconds)
        return registry

    def run(self, options: RunOptions | None = None) -> Report:
        """Execute the planned stages and return the finalized report."""
        options = options or RunOptions()
        registry = self.plan(options)

        if not options.modules:
            builder, not_attempted = self._run_sequence(registry, None, options.strict)
            cancelled = self.cancel_event.is_set()
            if options.enforce_policy and not cancelled:
                policy = self._enforce_policy()
                if policy is not None:
                    builder.append_policy(policy)
            return builder.finalize(not_attempted=not_attempted, cancelled=cancelled)

        partials = self._run_modules(registry, options)
        cancelled = self.cancel_event.is_set()
        policy = None
        if options.enforce_policy and not cancelled:
            policy = self._enforce_policy()
        return merge_reports(
            partials,
            options.modules,
            strict=options.strict,
            policy=policy,
            cancelled=cancelled,
        )

    # ------------------------------------------------------------------
    # Stage execution
    # ------------------------------------------------------------------

    def _run_sequence(
        self,
        registry: StageRegistry,
        module: str | None,
        strict: bool,
    ) -> tuple[ReportBuilder, list[str]]:
        """Run every stage in order, honouring fail-fast and cancellation.

        Returns the builder and the names of stages never attempted.
        """
        builder = ReportBuilder(strict=strict)
        stages = list(registry)

        for index, stage in enumerate(stages):
            if self.cancel_event.is_set():
                return builder, [s.name for s in stages[index:]]

            result = self.classifier.classify(self.executor.execute(stage, module))
            if not builder.add(result):
                return builder, [s.name for s in stages[index + 1:]]

        return builder, []

    def _run_module(
        self, registry: StageRegistry, module: str, strict: bool
    ) -> Report:
        builder, not_attempted = self._run_sequence(registry, module, strict)
        return builder.finalize(
            not_attempted=not_attempted, cancelled=self.cancel_event.is_set()
        )

    def _run_modules(
        self, registry: StageRegistry, options: RunOptions
    ) -> list[tuple[str, Report]]:
        modules = list(options.modules)
        jobs = min(options.jobs, len(modules))

        if jobs <= 1:
            return [
                (module, self._run_module(registry, module, options.strict))
                for module in modules
            ]

        logger.info("Checking %d module(s) with %d worker(s).", len(modules), jobs)
        partials: list[tuple[str, Report]] = []
        with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="qualitygate") as pool:
            futures: dict[Future[Report], str] = {
                pool.submit(self._run_module, registry, module, options.strict): module
                for module in modules
            }
            try:
                wait(futures)
            except KeyboardInterrupt:
                self.cancel()
                wait(futures)
            for future, module in futures.items():
                partials.append((module, future.result()))
        return partials

    def _enforce_policy(self) -> StageResult | None:
        if self.sources is None:
            return None
        return self.enforcer.enforce(self.sources)
