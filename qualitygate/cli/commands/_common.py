"""Helpers shared by the CLI commands."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from qualitygate.config import GateSettings
from qualitygate.core.suppressions import DirectorySource


def resolve_roots(project_dir: Path, roots: Sequence[Path]) -> list[Path]:
    """Anchor relative source roots at the project directory."""
    return [root if root.is_absolute() else project_dir / root for root in roots]


def directory_source(
    project_dir: Path,
    settings: GateSettings,
    roots: Sequence[Path] | None = None,
) -> DirectorySource:
    return DirectorySource(
        resolve_roots(project_dir, roots or settings.source_roots),
        settings.source_suffixes,
    )
