"""qualitygate: ordered quality-gate pipeline over external checking tools.

Runs a registry of stages (compile, format, lint, test, doc, audit) as
external processes, classifies their diagnostics by severity tier, enforces
a justification policy on suppression annotations, and reduces everything
to one immutable report with a clean/warn/fail verdict and exit code.
"""

__version__ = "0.1.0"
__description__ = "Ordered quality-gate pipeline over external checking tools"

from qualitygate.core.pipeline import GatePipeline
from qualitygate.core.registry import StageRegistry, default_registry
from qualitygate.models.reports import Report, Verdict
from qualitygate.cli.app import app as cli

__all__ = [
    "GatePipeline",
    "StageRegistry",
    "default_registry",
    "Report",
    "Verdict",
    "cli",
    "__version__",
]
