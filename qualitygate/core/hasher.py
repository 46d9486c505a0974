"""Digests for captured stage output and written reports.

Both are SHA-256 over canonical JSON (sorted keys, compact separators,
ASCII only), so equal content hashes equally across runs and platforms.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from typing import Any


def canonical_json(obj: Any) -> bytes:
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def compute_output_digest(stage_name: str, lines: Iterable[str]) -> str:
    """Hex digest of a stage's captured output.

    Two runs of a stage over an unchanged tree should agree; a differing
    digest is the first hint that a tool is flaky.
    """
    payload = {"stage": stage_name, "output": list(lines)}
    return hashlib.sha256(canonical_json(payload)).hexdigest()


def report_fingerprint(data: Mapping[str, Any]) -> str:
    """``sha256:<hex>`` of a dumped report, ignoring any earlier fingerprint."""
    body = {key: value for key, value in data.items() if key != "fingerprint"}
    return "sha256:" + hashlib.sha256(canonical_json(body)).hexdigest()
