"""Issue classifier — diagnostic parsing and the ordered severity rule table.

Three diagnostic shapes are recognised:

* rustc / clippy long form::

      warning: unused variable: `x`
        --> src/main.rs:4:9
         = note: `#[warn(unused_variables)]` on by default

* rustc short form (``--message-format=short``)::

      src/main.rs:4:9: warning: unused variable: `x`

* flake8-style code form::

      app/views.py:12:80: E501 line too long (88 > 79 characters)

A header line opens a diagnostic; following ``-->`` and note lines fill in
its location and rule id.  Lines that are not part of a diagnostic stay in
the raw output but produce no ``Issue``.

Severity is assigned by ``SEVERITY_RULES``, evaluated top to bottom, first
match wins.  The table is plain data so it can be inspected and tested on
its own.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from qualitygate.models.issues import Issue, SeverityTier, SourceLocation
from qualitygate.models.stages import (
    CLASSIFIED_CATEGORIES,
    StageResult,
    StageStatus,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Diagnostic line shapes
# ---------------------------------------------------------------------------

_LONG_HEADER = re.compile(
    r"^(?P<level>warning|error)(?:\[(?P<code>[A-Z]\d{4})\])?: (?P<message>.+)$"
)
_SHORT_FORM = re.compile(
    r"^(?P<path>[^\s:][^:]*):(?P<line>\d+):(?P<column>\d+): "
    r"(?P<level>warning|error)(?:\[(?P<code>[A-Z]\d{4})\])?: (?P<message>.+)$"
)
_CODE_FORM = re.compile(
    r"^(?P<path>[^\s:][^:]*):(?P<line>\d+):(?:(?P<column>\d+):)? "
    r"(?P<code>[A-Z]{1,3}\d{3,4}) (?P<message>.+)$"
)
_LOCATION = re.compile(r"^\s*--> (?P<path>[^:]+):(?P<line>\d+):(?P<column>\d+)")
_RULE_ATTRIBUTE = re.compile(r"#\[(?:warn|deny|forbid)\((?P<rule>[\w:]+)\)\]")
_RULE_FLAG = re.compile(r"`-[WD] (?P<rule>[\w:-]+)`")
_RULE_URL = re.compile(r"rust-clippy/[\w.-]+/index\.html#(?P<rule>\w+)")

# Tool chatter that looks like a diagnostic header but reports nothing.
_SUMMARY_MESSAGE = re.compile(
    r"generated \d+ warnings?"
    r"|aborting due to"
    r"|could not compile"
    r"|\d+ warnings? emitted"
    r"|build failed"
    r"|some errors have detailed explanations"
    r"|For more information about"
)


# ---------------------------------------------------------------------------
# Severity rule table
# ---------------------------------------------------------------------------


class SeverityRule(BaseModel):
    """One row of the severity table.

    A rule matches when the diagnostic's level is in ``levels`` (if set)
    and ``pattern`` (if set) is found in ``"<rule_id> <message>"``.  A rule
    with neither is a catch-all.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    tier: SeverityTier
    pattern: re.Pattern[str] | None = None
    levels: frozenset[str] = frozenset()

    def matches(self, level: str, rule_id: str, message: str) -> bool:
        if self.levels and level not in self.levels:
            return False
        if self.pattern is not None:
            return self.pattern.search(f"{rule_id} {message}") is not None
        return True


SEVERITY_RULES: tuple[SeverityRule, ...] = (
    SeverityRule(
        name="compiler-error",
        tier=SeverityTier.CRITICAL,
        levels=frozenset({"error"}),
    ),
    SeverityRule(
        name="memory-safety",
        tier=SeverityTier.CRITICAL,
        pattern=re.compile(
            r"\bunsafe\b|transmute|mem::forget|uninit|raw pointer|dangling"
            r"|not_unsafe_ptr_arg_deref|undocumented_unsafe_blocks"
        ),
    ),
    SeverityRule(
        name="panic-inducing",
        tier=SeverityTier.CRITICAL,
        pattern=re.compile(
            r"clippy::(?:unwrap_used|expect_used|panic|unreachable|todo"
            r"|unimplemented|indexing_slicing|arithmetic_side_effects)\b"
            r"|used `(?:unwrap|expect)\(\)`"
            r"|\b(?:panic|unreachable|todo|unimplemented)!"
            r"|unconditional_panic|this operation will panic"
            r"|arithmetic_overflow"
        ),
    ),
    SeverityRule(
        name="unused-fallible-result",
        tier=SeverityTier.CRITICAL,
        pattern=re.compile(
            r"unused_must_use|let_underscore_must_use"
            r"|unused `(?:std::result::)?Result`|that must be used"
        ),
    ),
    SeverityRule(
        name="unused-binding",
        tier=SeverityTier.MODERATE,
        pattern=re.compile(
            r"\bunused_(?:variables|imports|mut|assignments|macros|labels)\b"
            r"|\bdead_code\b|\bunreachable_code\b"
            r"|\bunused (?:variable|import|label)"
            r"|variable does not need to be mutable"
            r"|is never (?:used|read|constructed)"
            r"|\bF(?:401|811|841)\b"
        ),
    ),
    SeverityRule(
        name="numeric-precision",
        tier=SeverityTier.MODERATE,
        pattern=re.compile(
            r"float_cmp|float_equality_without_abs|lossy_float_literal"
            r"|cast_precision_loss|cast_possible_truncation|cast_sign_loss"
            r"|cast_possible_wrap|strict comparison of `f(?:32|64)`"
        ),
    ),
    SeverityRule(name="style", tier=SeverityTier.STYLE),
)


def assign_severity(
    level: str,
    rule_id: str,
    message: str,
    rules: Sequence[SeverityRule] = SEVERITY_RULES,
) -> SeverityTier:
    """Return the tier of the first rule that matches."""
    for rule in rules:
        if rule.matches(level, rule_id, message):
            return rule.tier
    return SeverityTier.STYLE


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _is_summary(message: str) -> bool:
    return _SUMMARY_MESSAGE.search(message) is not None


def _rule_from_note(line: str) -> str | None:
    for pattern in (_RULE_ATTRIBUTE, _RULE_FLAG, _RULE_URL):
        match = pattern.search(line)
        if match:
            rule = match.group("rule").replace("-", "_")
            if pattern is _RULE_URL:
                rule = f"clippy::{rule}"
            return rule
    return None


def _location(match: re.Match[str]) -> SourceLocation:
    column = match.groupdict().get("column")
    return SourceLocation(
        path=match.group("path").strip(),
        line=int(match.group("line")),
        column=int(column) if column else None,
    )


class _Pending:
    """A diagnostic header waiting for its location and rule lines."""

    __slots__ = ("level", "code", "message", "location", "rule")

    def __init__(
        self,
        level: str,
        code: str | None,
        message: str,
        location: SourceLocation | None = None,
    ) -> None:
        self.level = level
        self.code = code
        self.message = message
        self.location = location
        self.rule: str | None = None

    def to_issue(self, rules: Sequence[SeverityRule]) -> Issue:
        rule_id = self.rule or self.code or ""
        return Issue(
            severity=assign_severity(self.level, rule_id, self.message, rules),
            rule_id=rule_id,
            location=self.location,
            message=self.message,
            level=self.level,
        )


def has_diagnostic_markers(lines: Iterable[str]) -> bool:
    """Whether any line opens a diagnostic (summary chatter excluded)."""
    for line in lines:
        line = line.rstrip()
        for pattern in (_LONG_HEADER, _SHORT_FORM, _CODE_FORM):
            match = pattern.match(line)
            if match and not _is_summary(match.group("message")):
                return True
    return False


def parse_diagnostics(
    lines: Iterable[str],
    rules: Sequence[SeverityRule] = SEVERITY_RULES,
) -> list[Issue]:
    """Extract classified issues from tool output, in output order."""
    issues: list[Issue] = []
    pending: _Pending | None = None

    def flush() -> None:
        nonlocal pending
        if pending is not None:
            issues.append(pending.to_issue(rules))
            pending = None

    for raw in lines:
        line = raw.rstrip()

        match = _SHORT_FORM.match(line)
        if match:
            flush()
            if not _is_summary(match.group("message")):
                pending = _Pending(
                    match.group("level"),
                    match.group("code"),
                    match.group("message"),
                    _location(match),
                )
            continue

        match = _CODE_FORM.match(line)
        if match:
            flush()
            code = match.group("code")
            pending = _Pending(code, code, match.group("message"), _location(match))
            continue

        match = _LONG_HEADER.match(line)
        if match:
            flush()
            if not _is_summary(match.group("message")):
                pending = _Pending(
                    match.group("level"), match.group("code"), match.group("message")
                )
            continue

        if pending is None:
            continue

        if pending.location is None:
            loc_match = _LOCATION.match(line)
            if loc_match:
                pending.location = _location(loc_match)
                continue

        if pending.rule is None:
            rule = _rule_from_note(line)
            if rule:
                pending.rule = rule

    flush()
    return issues


class IssueClassifier:
    """Enriches stage results with per-issue severity.

    Only WARN and FAIL results of compile- and lint-category stages are
    broken down; every other result is returned unchanged.  Classification
    is a pure function of ``raw_output`` and the rule table.
    """

    def __init__(self, rules: Sequence[SeverityRule] = SEVERITY_RULES) -> None:
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[SeverityRule, ...]:
        return self._rules

    def classify_lines(self, lines: Iterable[str]) -> list[Issue]:
        return parse_diagnostics(lines, self._rules)

    def classify(self, result: StageResult) -> StageResult:
        if result.status not in (StageStatus.WARN, StageStatus.FAIL):
            return result
        if result.stage.category not in CLASSIFIED_CATEGORIES:
            return result

        issues = tuple(self.classify_lines(result.raw_output))
        logger.debug(
            "Classified %d issue(s) for stage %s.", len(issues), result.name
        )
        return result.model_copy(update={"issues": issues})
