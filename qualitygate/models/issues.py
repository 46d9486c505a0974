"""Diagnostic issue and suppression annotation models."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict

_WORD = re.compile(r"\w")


class SeverityTier(str, Enum):
    """Three-level severity applied to individual findings."""

    CRITICAL = "critical"
    MODERATE = "moderate"
    STYLE = "style"


class SourceLocation(BaseModel):
    """A file position reported by a tool or found by the enforcer."""

    model_config = ConfigDict(frozen=True)

    path: str
    line: int | None = None
    column: int | None = None

    def __str__(self) -> str:
        parts = [self.path]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)


class Issue(BaseModel):
    """One classified finding extracted from a stage's output."""

    model_config = ConfigDict(frozen=True)

    severity: SeverityTier
    rule_id: str = ""
    location: SourceLocation | None = None
    message: str
    level: str = "warning"  # the tool's own word: warning, error, E501, ...


class SuppressionAnnotation(BaseModel):
    """An in-source marker telling a tool to ignore a diagnostic."""

    model_config = ConfigDict(frozen=True)

    location: SourceLocation
    rule_id: str
    justification: str = ""
    marker: str = ""  # the annotation text as written

    @property
    def is_justified(self) -> bool:
        """A justification needs at least one word; bare punctuation is not one."""
        return bool(_WORD.search(self.justification))
