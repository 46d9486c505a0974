"""Stage executor — runs one external tool and records the outcome.

The executor never raises for stage-local problems.  A missing tool, a
non-zero exit, a timeout or an operator cancel all come back as a
``StageResult`` carrying a ``FailureReason``; the aggregator decides what
they mean for the rest of the run.

Outcome classification (individual issues come later, from the classifier):

    tool absent, optional        -> SKIPPED
    tool absent, required        -> FAIL   (tool_missing)
    exit 0, no diagnostic lines  -> PASS
    exit 0, diagnostic lines     -> WARN
    exit != 0                    -> FAIL   (nonzero_exit)
    deadline passed              -> FAIL   (timed_out)
    cancel signal set            -> FAIL   (cancelled)
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import threading
import time
from collections.abc import Callable, Mapping
from pathlib import Path

from qualitygate.core.classifier import has_diagnostic_markers
from qualitygate.core.hasher import compute_output_digest
from qualitygate.models.stages import (
    FailureReason,
    StageDescriptor,
    StageResult,
    StageStatus,
)

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS = 0.1


class ToolMissingError(RuntimeError):
    """Raised when a collaborator tool cannot be located."""

    def __init__(self, tool: str, detail: str = "not found on PATH") -> None:
        super().__init__(f"{tool}: {detail}")
        self.tool = tool


class ToolResolver:
    """Locates collaborator binaries.

    Explicit overrides (``QUALITYGATE_TOOL_PATHS``) win over ``PATH``.  An
    override that points at nothing is reported as missing rather than
    silently falling back to ``PATH``.
    """

    def __init__(
        self,
        overrides: Mapping[str, str] | None = None,
        *,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self._overrides = dict(overrides or {})
        self._which = which

    def resolve(self, tool: str) -> str:
        override = self._overrides.get(tool)
        if override:
            path = Path(override)
            if path.is_file() and os.access(path, os.X_OK):
                return str(path)
            raise ToolMissingError(tool, f"override path {override!r} is not executable")

        found = self._which(tool)
        if not found:
            raise ToolMissingError(tool)
        return found

    def is_available(self, tool: str) -> bool:
        try:
            self.resolve(tool)
        except ToolMissingError:
            return False
        return True


def _kill(proc: subprocess.Popen[str]) -> None:
    """Kill the tool and anything it spawned (cargo forks rustc)."""
    if os.name == "posix":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:
        proc.kill()


class StageExecutor:
    """Runs stage invocations as blocking subprocesses.

    Parameters
    ----------
    resolver:
        Tool locator.  A PATH-only resolver is used if not provided.
    default_timeout:
        Seconds a stage may run when its descriptor sets no timeout.
    cancel_event:
        Shared cancellation signal.  When set, the running process is
        killed and the stage is recorded as cancelled.
    cwd:
        Working directory for every invocation.
    """

    def __init__(
        self,
        resolver: ToolResolver | None = None,
        *,
        default_timeout: float = 600.0,
        cancel_event: threading.Event | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.resolver = resolver or ToolResolver()
        self.default_timeout = default_timeout
        self.cancel_event = cancel_event or threading.Event()
        self.cwd = cwd
        self._env = dict(env) if env is not None else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(
        self, descriptor: StageDescriptor, module: str | None = None
    ) -> StageResult:
        """Run *descriptor* (scoped to *module*) and return its result."""
        argv = descriptor.render_invocation(module)
        probe = descriptor.tool or (argv[0] if argv else "")

        if not argv:
            # Only optional stages get this far with an empty invocation.
            return self._missing(descriptor, module, probe or descriptor.name)

        try:
            if probe:
                self.resolver.resolve(probe)
            argv[0] = self.resolver.resolve(argv[0])
        except ToolMissingError as exc:
            return self._missing(descriptor, module, exc.tool, str(exc))

        timeout = descriptor.timeout_seconds or self.default_timeout
        logger.info(
            "Running stage %s%s: %s",
            descriptor.name,
            f" [{module}]" if module else "",
            " ".join(argv),
        )

        started = time.monotonic()
        try:
            exit_code, lines, reason = self._run(argv, timeout)
        except OSError as exc:
            logger.error("Stage %s could not launch: %s", descriptor.name, exc)
            return self._result(
                descriptor,
                module,
                StageStatus.FAIL,
                exit_code=None,
                lines=[f"failed to launch {argv[0]}: {exc}"],
                reason=FailureReason.LAUNCH_ERROR,
                duration=time.monotonic() - started,
            )
        duration = time.monotonic() - started

        if reason is not None:
            status = StageStatus.FAIL
        elif exit_code != 0:
            status, reason = StageStatus.FAIL, FailureReason.NONZERO_EXIT
        elif has_diagnostic_markers(lines):
            status = StageStatus.WARN
        else:
            status = StageStatus.PASS

        logger.info(
            "Stage %s finished: %s (exit=%s, %.2fs)",
            descriptor.name, status.value, exit_code, duration,
        )
        return self._result(
            descriptor, module, status,
            exit_code=exit_code, lines=lines, reason=reason, duration=duration,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(
        self, argv: list[str], timeout: float
    ) -> tuple[int | None, list[str], FailureReason | None]:
        """Run *argv* to completion, deadline or cancellation."""
        proc = subprocess.Popen(
            argv,
            cwd=str(self.cwd) if self.cwd else None,
            env=self._env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            start_new_session=(os.name == "posix"),
        )
        deadline = time.monotonic() + timeout
        reason: FailureReason | None = None

        while True:
            remaining = deadline - time.monotonic()
            try:
                output, _ = proc.communicate(
                    timeout=max(0.0, min(_POLL_INTERVAL_SECONDS, remaining))
                )
                break
            except KeyboardInterrupt:
                # Operator interrupt: stop this tool and tell everyone else.
                self.cancel_event.set()
                reason = FailureReason.CANCELLED
                _kill(proc)
                output, _ = proc.communicate()
                break
            except subprocess.TimeoutExpired:
                if self.cancel_event.is_set():
                    reason = FailureReason.CANCELLED
                elif time.monotonic() >= deadline:
                    reason = FailureReason.TIMED_OUT
                else:
                    continue
                _kill(proc)
                output, _ = proc.communicate()
                break

        lines = (output or "").splitlines()
        if reason == FailureReason.TIMED_OUT:
            lines.append(f"timed out after {timeout:.1f}s")
            return None, lines, reason
        if reason == FailureReason.CANCELLED:
            lines.append("cancelled by operator")
            return None, lines, reason
        return proc.returncode, lines, None

    def _missing(
        self,
        descriptor: StageDescriptor,
        module: str | None,
        tool: str,
        detail: str = "",
    ) -> StageResult:
        detail = detail or f"{tool}: not found on PATH"
        if descriptor.optional:
            logger.warning("Skipping stage %s: %s", descriptor.name, detail)
            return self._result(
                descriptor, module, StageStatus.SKIPPED,
                exit_code=None,
                lines=[f"{detail} - skipping {descriptor.label}"],
            )
        logger.error("Stage %s cannot run: %s", descriptor.name, detail)
        return self._result(
            descriptor, module, StageStatus.FAIL,
            exit_code=None,
            lines=[f"{detail} (set QUALITYGATE_TOOL_PATHS to point at it)"],
            reason=FailureReason.TOOL_MISSING,
        )

    @staticmethod
    def _result(
        descriptor: StageDescriptor,
        module: str | None,
        status: StageStatus,
        *,
        exit_code: int | None,
        lines: list[str],
        reason: FailureReason | None = None,
        duration: float = 0.0,
    ) -> StageResult:
        return StageResult(
            stage=descriptor,
            status=status,
            exit_code=exit_code,
            raw_output=tuple(lines),
            reason=reason,
            module=module,
            duration_seconds=round(duration, 3),
            output_digest=compute_output_digest(descriptor.name, lines),
        )
