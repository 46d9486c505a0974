"""Suppression policy enforcement — every ignored diagnostic needs a reason.

A suppression annotation tells a tool to stay quiet about one rule.  That
is allowed, but only with an explanation next to it.  Unexplained
suppressions are reported as moderate issues under the virtual ``policy``
stage, which fails the gate regardless of strict mode.

Recognised annotations
----------------------
Rust:   ``#[allow(rule, ...)]``, ``#![allow(...)]``, ``#[expect(...)]``
Python: ``# noqa[: CODES]``, ``# type: ignore[codes]``,
        ``# pylint: disable=names``

Where a justification may live
------------------------------
* ``reason = "..."`` inside a Rust attribute;
* a trailing comment on the annotation line
  (``#[allow(dead_code)] // kept for the FFI table``,
  ``# noqa: E501 -- generated URL``);
* a block of plain comment lines directly above the annotation.  Other
  attribute lines and doc comments (``///``, ``//!``) in between are
  skipped, but doc comments never count as a justification themselves.
"""

from __future__ import annotations

import io
import logging
import re
import tokenize
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Protocol

from qualitygate.core.hasher import compute_output_digest
from qualitygate.models.issues import (
    Issue,
    SeverityTier,
    SourceLocation,
    SuppressionAnnotation,
)
from qualitygate.models.stages import (
    POLICY_STAGE,
    FailureReason,
    StageResult,
    StageStatus,
)

logger = logging.getLogger(__name__)


class SourceProvider(Protocol):
    """Anything that yields ``(path, text)`` pairs of project source."""

    def __iter__(self) -> Iterator[tuple[str, str]]: ...


class DirectorySource:
    """Walks source roots for files with the given suffixes.

    Files are yielded in sorted order so scans are reproducible.  Missing
    roots are skipped with a log line, not an error.
    """

    def __init__(
        self,
        roots: Sequence[Path | str],
        suffixes: Sequence[str] = (".rs", ".py"),
    ) -> None:
        self.roots = [Path(r) for r in roots]
        self.suffixes = tuple(suffixes)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for root in self.roots:
            if root.is_file():
                files = [root]
            elif root.is_dir():
                files = sorted(
                    p for p in root.rglob("*")
                    if p.is_file() and p.suffix in self.suffixes
                )
            else:
                logger.info("Source root %s does not exist; skipping.", root)
                continue
            for path in files:
                yield str(path), path.read_text(encoding="utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Rust
# ---------------------------------------------------------------------------

_RUST_ATTR_OPEN = re.compile(r"^\s*#!?\[(?:allow|expect)\(")
_RUST_ATTR = re.compile(
    r'^\s*#!?\[(?P<kind>allow|expect)\((?P<body>(?:"(?:[^"\\]|\\.)*"|[^"\]])*)\)\]'
    r"(?P<rest>.*)$"
)
_RUST_REASON = re.compile(r'\breason\s*=\s*"(?P<reason>(?:[^"\\]|\\.)*)"')
_RUST_LINE_COMMENT = re.compile(r"//[^\n]*")
# Attributes split by rustfmt rarely run past a handful of lines.
_RUST_ATTR_MAX_LINES = 64
_RUST_ATTR_LINE = re.compile(r"^\s*#!?\[")
_RUST_DOC = re.compile(r"^\s*//[/!]")
_RUST_COMMENT = re.compile(r"^\s*//(?P<text>.*)$")


def _comment_block_above(
    lines: Sequence[str],
    index: int,
    *,
    skip: Sequence[re.Pattern[str]],
    comment: re.Pattern[str],
) -> str:
    """Collect the plain comment block directly above ``lines[index]``."""
    collected: list[str] = []
    i = index - 1
    while i >= 0 and any(p.match(lines[i]) for p in skip) and not collected:
        i -= 1
    while i >= 0:
        match = comment.match(lines[i])
        if not match or any(p.match(lines[i]) for p in skip):
            break
        collected.append(match.group("text").strip())
        i -= 1
    return " ".join(reversed([c for c in collected if c]))


def _trailing_comment(rest: str, marker: str) -> str:
    """Text of a comment that starts the remainder of a line, else ``""``."""
    rest = rest.lstrip()
    if not rest.startswith(marker):
        return ""
    return rest[len(marker):].strip()


def _rust_attribute(lines: Sequence[str], index: int) -> tuple[re.Match[str] | None, int]:
    """Match the attribute opened on ``lines[index]``.

    Returns the match and the index of the line the attribute closes on.
    Attributes split over several lines are joined before matching.
    """
    match = _RUST_ATTR.match(lines[index])
    if match or not _RUST_ATTR_OPEN.match(lines[index]):
        return match, index
    last = min(len(lines), index + _RUST_ATTR_MAX_LINES)
    for end in range(index + 1, last):
        match = _RUST_ATTR.match("\n".join(lines[index:end + 1]))
        if match:
            return match, end
    logger.debug("Unterminated attribute at line %d; skipping.", index + 1)
    return None, index


def _rust_rules(body: str) -> tuple[list[str], str]:
    """Split an attribute body into rule names and its ``reason`` text."""
    reason = ""
    reason_match = _RUST_REASON.search(body)
    if reason_match:
        reason = reason_match.group("reason")
        body = body[:reason_match.start()] + body[reason_match.end():]
    body = _RUST_LINE_COMMENT.sub("", body)
    rules = [part.strip() for part in body.split(",") if part.strip()]
    return rules, reason


def scan_rust(path: str, text: str) -> list[SuppressionAnnotation]:
    annotations: list[SuppressionAnnotation] = []
    lines = text.splitlines()
    index = 0
    while index < len(lines):
        start = index
        match, index = _rust_attribute(lines, start)
        index += 1
        if not match:
            continue

        rules, reason = _rust_rules(match.group("body"))
        justification = (
            reason
            or _trailing_comment(match.group("rest"), "//")
            or _comment_block_above(
                lines, start,
                skip=(_RUST_ATTR_LINE, _RUST_DOC),
                comment=_RUST_COMMENT,
            )
        )
        location = SourceLocation(path=path, line=start + 1)
        marker = " ".join(part.strip() for part in lines[start:index])
        for rule in rules:
            annotations.append(
                SuppressionAnnotation(
                    location=location,
                    rule_id=rule,
                    justification=justification,
                    marker=marker,
                )
            )
    return annotations


# ---------------------------------------------------------------------------
# Python
# ---------------------------------------------------------------------------

_PY_MARKERS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"#\s*noqa(?::\s*(?P<codes>[A-Z]+\d+(?:\s*,\s*[A-Z]+\d+)*))?(?P<rest>.*)$"
    ),
    re.compile(r"#\s*type:\s*ignore(?:\[(?P<codes>[^\]]*)\])?(?P<rest>.*)$"),
    re.compile(
        r"#\s*pylint:\s*disable=(?P<codes>[\w-]+(?:\s*,\s*[\w-]+)*)(?P<rest>.*)$"
    ),
)
_PY_COMMENT = re.compile(r"^\s*#(?P<text>.*)$")
_PY_MARKER_LINE = re.compile(r"^\s*#\s*(?:noqa|type:\s*ignore|pylint:)")
_JUSTIFICATION_LEAD = re.compile(r"^[\s#:,-]+")


def _python_comments(path: str, text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_index, comment)`` for every real comment token.

    Markers inside string literals are never comments, so they are not
    yielded.  Source that fails to tokenize is scanned up to the error.
    """
    readline = io.StringIO(text).readline
    try:
        for token in tokenize.generate_tokens(readline):
            if token.type == tokenize.COMMENT:
                yield token.start[0] - 1, token.string
    except (tokenize.TokenError, SyntaxError) as exc:
        logger.warning("Cannot tokenize %s (%s); later lines not scanned.", path, exc)


def scan_python(path: str, text: str) -> list[SuppressionAnnotation]:
    annotations: list[SuppressionAnnotation] = []
    lines = text.splitlines()
    for index, comment in _python_comments(path, text):
        for pattern in _PY_MARKERS:
            match = pattern.search(comment)
            if not match:
                continue
            codes = match.group("codes")
            rules = [c.strip() for c in codes.split(",") if c.strip()] if codes else ["*"]
            justification = _JUSTIFICATION_LEAD.sub("", match.group("rest")).strip()
            if not justification:
                justification = _comment_block_above(
                    lines, index, skip=(_PY_MARKER_LINE,), comment=_PY_COMMENT
                )
            location = SourceLocation(path=path, line=index + 1)
            for rule in rules:
                annotations.append(
                    SuppressionAnnotation(
                        location=location,
                        rule_id=rule,
                        justification=justification,
                        marker=match.group(0).strip(),
                    )
                )
            break
    return annotations


_SCANNERS = {
    ".rs": scan_rust,
    ".py": scan_python,
}


# ---------------------------------------------------------------------------
# Enforcer
# ---------------------------------------------------------------------------


class SuppressionEnforcer:
    """Finds suppression annotations and turns unjustified ones into issues."""

    def scan(self, sources: SourceProvider) -> list[SuppressionAnnotation]:
        """Return every annotation found, in source order."""
        found: list[SuppressionAnnotation] = []
        for path, text in sources:
            scanner = _SCANNERS.get(Path(path).suffix)
            if scanner is None:
                continue
            found.extend(scanner(path, text))
        return found

    def violations(
        self, annotations: Iterable[SuppressionAnnotation]
    ) -> list[Issue]:
        return [
            Issue(
                severity=SeverityTier.MODERATE,
                rule_id=a.rule_id,
                location=a.location,
                message=f"suppression of `{a.rule_id}` has no justification",
                level="policy",
            )
            for a in annotations
            if not a.is_justified
        ]

    def enforce(self, sources: SourceProvider) -> StageResult:
        """Scan *sources* and report the outcome as the ``policy`` stage."""
        annotations = self.scan(sources)
        issues = self.violations(annotations)
        lines = [f"{i.location}: {i.message}" for i in issues]

        if issues:
            logger.warning(
                "%d of %d suppression annotation(s) lack a justification.",
                len(issues), len(annotations),
            )
        else:
            logger.info(
                "All %d suppression annotation(s) are justified.", len(annotations)
            )

        return StageResult(
            stage=POLICY_STAGE,
            status=StageStatus.FAIL if issues else StageStatus.PASS,
            raw_output=tuple(lines),
            issues=tuple(issues),
            reason=FailureReason.POLICY_VIOLATION if issues else None,
            output_digest=compute_output_digest(POLICY_STAGE.name, lines),
        )
