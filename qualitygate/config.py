"""Runtime settings — env-driven.

Centralized config using pydantic-settings.  Reads from a .env file and
QUALITYGATE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class GateSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Point the gate at tools outside ``PATH``::

        export QUALITYGATE_TOOL_PATHS='{"cargo": "/opt/rust/bin/cargo"}'
        export QUALITYGATE_DEFAULT_TIMEOUT_SECONDS=900

    Or via .env file::

        QUALITYGATE_LOG_LEVEL=INFO
        QUALITYGATE_MAX_WORKERS=4
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="QUALITYGATE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "WARNING"

    # Stage registry; the built-in cargo pipeline is used when unset
    registry_path: Path | None = None

    # Tool name -> absolute path; takes precedence over PATH lookup
    tool_paths: dict[str, str] = {}

    # Execution
    default_timeout_seconds: float = 600.0
    max_workers: int = 4
    strict: bool = False

    # Suppression policy scan
    source_roots: list[Path] = [Path("src")]
    source_suffixes: list[str] = [".rs", ".py"]

    def tool_override(self, tool: str) -> str | None:
        """Return the configured path for *tool*, if any."""
        return self.tool_paths.get(tool) or None
