"""Pipeline definition — the ordered, validated list of stage descriptors.

The registry is read-only once built.  Narrowing it to a subset, or
overriding the continue-on-failure policy, produces a *new* registry;
nothing mutates a registry that a run is iterating over.

Registries can be loaded from TOML, either a dedicated ``qualitygate.toml``
or the ``[tool.qualitygate]`` table of ``pyproject.toml``::

    [[tool.qualitygate.stages]]
    name = "clippy"
    category = "lint"
    invocation = ["cargo", "clippy", "--all-targets"]
    strict_eligible = true
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from qualitygate.models.stages import DEFAULT_STAGE_DESCRIPTORS, StageDescriptor

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when the stage registry or run configuration is malformed.

    Always fatal and raised before any stage executes.
    """


class StageRegistry:
    """Ordered collection of uniquely named stage descriptors.

    Parameters
    ----------
    descriptors:
        Stage descriptors in execution order.

    Raises
    ------
    ConfigurationError
        If the registry is empty, two stages share a name, or a
        non-optional stage declares a tool but has no invocation.
    """

    def __init__(self, descriptors: Iterable[StageDescriptor]) -> None:
        self._stages: tuple[StageDescriptor, ...] = tuple(descriptors)
        self._validate()

    def _validate(self) -> None:
        if not self._stages:
            raise ConfigurationError("Stage registry is empty.")

        seen: set[str] = set()
        for stage in self._stages:
            if not stage.name:
                raise ConfigurationError("Stage with an empty name in registry.")
            if stage.name in seen:
                raise ConfigurationError(f"Duplicate stage name {stage.name!r}.")
            seen.add(stage.name)

            if not stage.optional and stage.tool and not stage.invocation:
                raise ConfigurationError(
                    f"Stage {stage.name!r} declares tool {stage.tool!r} "
                    "but its invocation template is empty."
                )

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def stages(self) -> tuple[StageDescriptor, ...]:
        return self._stages

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._stages]

    def get(self, name: str) -> StageDescriptor:
        for stage in self._stages:
            if stage.name == name:
                return stage
        raise ConfigurationError(
            f"Unknown stage {name!r}. Registered stages: {self.names}"
        )

    def __iter__(self) -> Iterator[StageDescriptor]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"<StageRegistry stages={self.names!r}>"

    # ------------------------------------------------------------------
    # Derived registries
    # ------------------------------------------------------------------

    def select(self, names: Sequence[str]) -> StageRegistry:
        """Return a registry restricted to *names*, kept in registry order.

        An empty selection means every stage.
        """
        if not names:
            return self
        wanted = set(names)
        unknown = sorted(wanted - set(self.names))
        if unknown:
            raise ConfigurationError(
                f"Unknown stage(s) {unknown}. Registered stages: {self.names}"
            )
        return StageRegistry(s for s in self._stages if s.name in wanted)

    def with_continue_override(self) -> StageRegistry:
        """Return a registry in which every stage continues past failure."""
        return StageRegistry(
            s.model_copy(update={"continue_on_failure": True}) for s in self._stages
        )

    def with_default_timeout(self, seconds: float) -> StageRegistry:
        """Return a registry where stages without their own timeout get *seconds*."""
        return StageRegistry(
            s if s.timeout_seconds else s.model_copy(update={"timeout_seconds": seconds})
            for s in self._stages
        )


def default_registry() -> StageRegistry:
    """The built-in cargo quality pipeline."""
    return StageRegistry(DEFAULT_STAGE_DESCRIPTORS)


def _parse_stage(raw: Any, index: int) -> StageDescriptor:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Stage entry #{index} is not a table.")
    data = dict(raw)
    invocation = data.get("invocation", [])
    if isinstance(invocation, str):
        invocation = invocation.split()
    elif not isinstance(invocation, list):
        raise ConfigurationError(
            f"Stage entry #{index}: invocation must be an array or a string, "
            f"not {type(invocation).__name__}."
        )
    data["invocation"] = tuple(invocation)
    if not data.get("tool") and data["invocation"]:
        data["tool"] = data["invocation"][0]
    try:
        return StageDescriptor(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid stage entry #{index}: {exc}") from exc


def registry_from_mapping(document: dict[str, Any]) -> StageRegistry:
    """Build a registry from a parsed TOML document.

    Accepts both a top-level ``stages`` array and the ``tool.qualitygate``
    table of a ``pyproject.toml``.
    """
    tool = document.get("tool", {})
    if not isinstance(tool, dict):
        raise ConfigurationError("The 'tool' key must be a table.")
    table = tool.get("qualitygate", document)
    if not isinstance(table, dict):
        raise ConfigurationError("The [tool.qualitygate] entry must be a table.")
    entries = table.get("stages")
    if not isinstance(entries, list):
        raise ConfigurationError("No [[stages]] array found in configuration.")
    return StageRegistry(_parse_stage(raw, i) for i, raw in enumerate(entries))


def load_registry(path: Path | str) -> StageRegistry:
    """Load and validate a stage registry from a TOML file."""
    path = Path(path)
    try:
        document = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Registry file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read registry file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Malformed registry file {path}: {exc}") from exc

    registry = registry_from_mapping(document)
    logger.info("Loaded %d stage(s) from %s.", len(registry), path)
    return registry


def discover_registry(root: Path, explicit: Path | None = None) -> StageRegistry:
    """Find the registry for the project at *root*.

    Lookup order: *explicit* path, ``qualitygate.toml``, the
    ``[tool.qualitygate]`` table of ``pyproject.toml``, then the built-in
    cargo pipeline.
    """
    if explicit is not None:
        return load_registry(explicit)

    candidate = root / "qualitygate.toml"
    if candidate.is_file():
        return load_registry(candidate)

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            document = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Malformed {pyproject}: {exc}") from exc
        tool = document.get("tool", {})
        if isinstance(tool, dict) and "qualitygate" in tool:
            registry = registry_from_mapping(document)
            logger.info("Loaded %d stage(s) from %s.", len(registry), pyproject)
            return registry

    logger.info("No registry configured; using the built-in cargo pipeline.")
    return default_registry()
