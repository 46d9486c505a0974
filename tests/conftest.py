"""Shared test fixtures for qualitygate."""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from qualitygate.core.executor import StageExecutor, ToolResolver
from qualitygate.core.registry import StageRegistry
from qualitygate.models.issues import Issue, SeverityTier
from qualitygate.models.stages import (
    FailureReason,
    StageCategory,
    StageDescriptor,
    StageResult,
    StageStatus,
)


# ---------------------------------------------------------------------------
# Canned diagnostic output
# ---------------------------------------------------------------------------

UNUSED_VARIABLE = [
    "warning: unused variable: `x`",
    " --> src/main.rs:4:9",
    "  |",
    "4 |     let x = 5;",
    "  |         ^ help: if this is intentional, prefix it with an underscore: `_x`",
    "  |",
    "  = note: `#[warn(unused_variables)]` on by default",
    "",
]

NEEDLESS_RETURN = [
    "warning: unneeded `return` statement",
    " --> src/lib.rs:10:5",
    "  = help: for further information visit "
    "https://rust-lang.github.io/rust-clippy/master/index.html#needless_return",
    "  = note: `#[warn(clippy::needless_return)]` on by default",
]

REDUNDANT_CLONE = [
    "warning: redundant clone",
    " --> src/lib.rs:22:14",
    "  = note: `-W clippy::redundant-clone` implied by `-W clippy::nursery`",
]

MISMATCHED_TYPES = [
    "error[E0308]: mismatched types",
    " --> src/main.rs:2:18",
    "error: aborting due to 1 previous error",
    "error: could not compile `demo` (bin \"demo\") due to 1 previous error",
]


# ---------------------------------------------------------------------------
# Descriptor and result factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_descriptor() -> Callable[..., StageDescriptor]:
    """Factory fixture: build a StageDescriptor with sensible defaults."""

    def _factory(name: str = "check", **overrides: Any) -> StageDescriptor:
        defaults: dict[str, Any] = {
            "name": name,
            "category": StageCategory.COMPILE,
            "tool": "cargo",
            "invocation": ("cargo", name),
        }
        defaults.update(overrides)
        return StageDescriptor(**defaults)

    return _factory


@pytest.fixture
def make_result(
    make_descriptor: Callable[..., StageDescriptor],
) -> Callable[..., StageResult]:
    """Factory fixture: build a StageResult for a named stage."""

    def _factory(
        name: str = "check",
        status: StageStatus = StageStatus.PASS,
        *,
        descriptor: StageDescriptor | None = None,
        **overrides: Any,
    ) -> StageResult:
        defaults: dict[str, Any] = {
            "stage": descriptor or make_descriptor(name),
            "status": status,
            "exit_code": 1 if status == StageStatus.FAIL else 0,
        }
        if status == StageStatus.FAIL:
            defaults["reason"] = FailureReason.NONZERO_EXIT
        defaults.update(overrides)
        return StageResult(**defaults)

    return _factory


@pytest.fixture
def style_issue() -> Issue:
    return Issue(
        severity=SeverityTier.STYLE,
        rule_id="clippy::needless_return",
        message="unneeded `return` statement",
    )


@pytest.fixture
def python_stage() -> Callable[..., StageDescriptor]:
    """Factory fixture: a stage whose "tool" is this Python interpreter.

    The script passed in becomes ``python -c <script>``, so tests can make a
    stage print diagnostics, exit non-zero or hang without any real linter.
    """

    def _factory(
        name: str,
        script: str,
        category: StageCategory = StageCategory.LINT,
        **overrides: Any,
    ) -> StageDescriptor:
        defaults: dict[str, Any] = {
            "name": name,
            "category": category,
            "tool": sys.executable,
            "invocation": (sys.executable, "-c", script),
        }
        defaults.update(overrides)
        return StageDescriptor(**defaults)

    return _factory


def print_lines_script(lines: list[str], exit_code: int = 0) -> str:
    """Build a ``-c`` script that prints *lines* and exits with *exit_code*."""
    return f"import sys\nfor line in {lines!r}:\n    print(line)\nsys.exit({exit_code})\n"


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


class ScriptedExecutor(StageExecutor):
    """Executor returning canned outcomes per stage name; runs nothing.

    Stages without a scripted outcome pass.  ``on_execute`` runs before each
    stage so a test can, for example, request cancellation mid-run.
    """

    def __init__(
        self,
        outcomes: Mapping[str, tuple[StageStatus, list[str]]] | None = None,
        *,
        on_execute: Callable[[StageDescriptor, str | None], None] | None = None,
    ) -> None:
        super().__init__(ToolResolver(which=lambda tool: f"/usr/bin/{tool}"))
        self.outcomes = dict(outcomes or {})
        self.on_execute = on_execute
        self.calls: list[tuple[str, str | None]] = []
        self._lock = threading.Lock()

    def execute(
        self, descriptor: StageDescriptor, module: str | None = None
    ) -> StageResult:
        with self._lock:
            self.calls.append((descriptor.name, module))
        if self.on_execute is not None:
            self.on_execute(descriptor, module)

        status, lines = self.outcomes.get(descriptor.name, (StageStatus.PASS, []))
        return StageResult(
            stage=descriptor,
            status=status,
            exit_code=1 if status == StageStatus.FAIL else 0,
            raw_output=tuple(lines),
            reason=FailureReason.NONZERO_EXIT if status == StageStatus.FAIL else None,
            module=module,
        )

    @property
    def executed(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def scripted_executor() -> Callable[..., ScriptedExecutor]:
    """Factory fixture: build a ScriptedExecutor."""
    return ScriptedExecutor


@pytest.fixture
def three_stage_registry(make_descriptor: Callable[..., StageDescriptor]) -> StageRegistry:
    """compile -> lint -> test, all fail-fast."""
    return StageRegistry(
        [
            make_descriptor("check", category=StageCategory.COMPILE, strict_eligible=True),
            make_descriptor("clippy", category=StageCategory.LINT, strict_eligible=True),
            make_descriptor("test", category=StageCategory.TEST),
        ]
    )


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """A small Rust source tree whose suppressions are all justified."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "lib.rs").write_text(
        "// FFI table is indexed by the C side\n"
        "#[allow(dead_code)]\n"
        "const TABLE: [u8; 2] = [0, 1];\n"
        '#[allow(clippy::cast_possible_truncation, reason = "values fit in u8")]\n'
        "fn narrow(x: u32) -> u8 { x as u8 }\n",
        encoding="utf-8",
    )
    return src


@pytest.fixture
def lines_script() -> Callable[..., str]:
    return print_lines_script


@pytest.fixture
def diagnostics() -> dict[str, list[str]]:
    """Canned rustc / clippy output keyed by what it contains."""
    return {
        "unused_variable": list(UNUSED_VARIABLE),
        "needless_return": list(NEEDLESS_RETURN),
        "redundant_clone": list(REDUNDANT_CLONE),
        "mismatched_types": list(MISMATCHED_TYPES),
    }
