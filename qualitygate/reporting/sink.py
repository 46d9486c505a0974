"""Report file sink — writes finalized reports to disk.

Two formats are supported, chosen by file suffix:

* ``.json`` — canonical JSON of the full report, plus a ``fingerprint``
  content address so two reports can be compared at a glance;
* anything else — the plain-text rendering.

The file is a run artifact for later inspection, not a stable interface.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from qualitygate.core.hasher import canonical_json, report_fingerprint
from qualitygate.models.reports import Report
from qualitygate.reporting.renderer import ReportRenderer

logger = logging.getLogger(__name__)


class ReportFileSink:
    """Writes reports to a single file path.

    Parameters
    ----------
    path:
        Target file.  Parent directories are created as needed.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @property
    def sink_name(self) -> str:
        return "report_file"

    def accept(self, report: Report) -> Path:
        """Write *report* and return the path written."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self.path.suffix == ".json":
            data = report.model_dump(mode="json")
            data["fingerprint"] = report_fingerprint(data)
            self.path.write_bytes(canonical_json(data))
        else:
            text = ReportRenderer().render_text(report)
            self.path.write_text(text + "\n", encoding="utf-8")

        logger.debug("ReportFileSink: wrote report to %s", self.path)
        return self.path

    def read(self) -> dict[str, Any]:
        """Read back a JSON report written by this sink."""
        return json.loads(self.path.read_bytes())
