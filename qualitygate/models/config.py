"""Per-run option model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RunOptions(BaseModel):
    """Options for a single gate run, assembled by the CLI.

    ``stages`` empty means every registered stage.  ``modules`` empty means
    a single project-wide pass; otherwise each module gets its own stage
    sequence, and ``jobs > 1`` runs those sequences concurrently.
    """

    model_config = ConfigDict(frozen=True)

    strict: bool = False
    continue_on_failure: bool = False
    stages: tuple[str, ...] = ()
    modules: tuple[str, ...] = ()
    jobs: int = Field(default=1, ge=1)
    timeout_seconds: float | None = Field(default=None, gt=0)
    enforce_policy: bool = True
