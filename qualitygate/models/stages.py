"""Stage descriptor and stage result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from qualitygate.models.issues import Issue

MODULE_PLACEHOLDER = "{module}"


class StageCategory(str, Enum):
    """What kind of check a stage performs."""

    COMPILE = "compile"
    FORMAT = "format"
    LINT = "lint"
    TEST = "test"
    DOC = "doc"
    AUDIT = "audit"
    POLICY = "policy"  # the virtual suppression-policy stage only


class StageStatus(str, Enum):
    """Outcome of a single stage execution."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    SKIPPED = "skipped"


class FailureReason(str, Enum):
    """Why a stage ended in FAIL (or was recorded without running)."""

    NONZERO_EXIT = "nonzero_exit"
    TOOL_MISSING = "tool_missing"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    LAUNCH_ERROR = "launch_error"
    POLICY_VIOLATION = "policy_violation"


# Categories whose output the classifier breaks down into issues.
CLASSIFIED_CATEGORIES: frozenset[StageCategory] = frozenset(
    {StageCategory.COMPILE, StageCategory.LINT}
)


class StageDescriptor(BaseModel):
    """Defines one verification step and its execution policy.

    ``tool`` is the binary probed for presence; ``invocation`` is the argv
    executed.  They usually share the first element, but not always
    (``cargo audit`` is provided by the ``cargo-audit`` binary).
    Unknown fields are rejected so a misspelt registry key fails loudly.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    category: StageCategory
    tool: str = ""
    invocation: tuple[str, ...] = ()
    display_name: str = ""
    continue_on_failure: bool = False
    strict_eligible: bool = False
    optional: bool = False
    timeout_seconds: float | None = Field(default=None, gt=0)

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def is_module_scoped(self) -> bool:
        """Whether the invocation template takes a ``{module}`` argument."""
        return any(MODULE_PLACEHOLDER in arg for arg in self.invocation)

    def render_invocation(self, module: str | None = None) -> list[str]:
        """Return the concrete argv, substituting ``{module}`` if given.

        Arguments that reference ``{module}`` are dropped when no module is
        in scope, so a module-aware template still runs project-wide.
        """
        argv: list[str] = []
        for arg in self.invocation:
            if MODULE_PLACEHOLDER in arg:
                if module is None:
                    continue
                arg = arg.replace(MODULE_PLACEHOLDER, module)
            argv.append(arg)
        return argv


class StageResult(BaseModel):
    """The immutable record of one stage execution."""

    model_config = ConfigDict(frozen=True)

    stage: StageDescriptor
    status: StageStatus
    exit_code: int | None = None
    raw_output: tuple[str, ...] = ()
    issues: tuple[Issue, ...] = ()
    reason: FailureReason | None = None
    module: str | None = None
    duration_seconds: float = 0.0
    output_digest: str = ""

    @property
    def name(self) -> str:
        return self.stage.name

    @property
    def halts_pipeline(self) -> bool:
        """A failed stage without continue-on-failure stops the run."""
        return self.status == StageStatus.FAIL and not self.stage.continue_on_failure

    @property
    def escalates_under_strict(self) -> bool:
        return self.status == StageStatus.WARN and self.stage.strict_eligible


# Mirrors the project-wide quality check: dependency/compile check, format,
# lint, unit tests, integration tests, docs, then the optional audit.
DEFAULT_STAGE_DESCRIPTORS: list[StageDescriptor] = [
    StageDescriptor(
        name="check",
        display_name="Compilation Check",
        category=StageCategory.COMPILE,
        tool="cargo",
        invocation=("cargo", "check", "--all-targets"),
        strict_eligible=True,
    ),
    StageDescriptor(
        name="fmt",
        display_name="Code Formatting",
        category=StageCategory.FORMAT,
        tool="cargo",
        invocation=("cargo", "fmt", "--check"),
        continue_on_failure=True,
    ),
    StageDescriptor(
        name="clippy",
        display_name="Clippy Lints",
        category=StageCategory.LINT,
        tool="cargo",
        invocation=("cargo", "clippy", "--all-targets"),
        strict_eligible=True,
    ),
    StageDescriptor(
        name="test",
        display_name="Unit Tests",
        category=StageCategory.TEST,
        tool="cargo",
        invocation=("cargo", "test", "{module}"),
    ),
    StageDescriptor(
        name="integration",
        display_name="Integration Tests",
        category=StageCategory.TEST,
        tool="cargo",
        invocation=("cargo", "test", "--test", "*"),
    ),
    StageDescriptor(
        name="doc",
        display_name="Documentation",
        category=StageCategory.DOC,
        tool="cargo",
        invocation=("cargo", "doc", "--no-deps"),
        continue_on_failure=True,
    ),
    StageDescriptor(
        name="audit",
        display_name="Security Audit",
        category=StageCategory.AUDIT,
        tool="cargo-audit",
        invocation=("cargo", "audit"),
        continue_on_failure=True,
        strict_eligible=True,
        optional=True,
    ),
]

# The virtual stage the suppression enforcer reports under.
POLICY_STAGE = StageDescriptor(
    name="policy",
    display_name="Suppression Policy",
    category=StageCategory.POLICY,
    continue_on_failure=True,
)
