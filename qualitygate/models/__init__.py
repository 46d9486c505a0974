"""qualitygate data models — all Pydantic v2, all frozen (immutable)."""

from qualitygate.models.config import RunOptions
from qualitygate.models.issues import (
    Issue,
    SeverityTier,
    SourceLocation,
    SuppressionAnnotation,
)
from qualitygate.models.reports import Report, Verdict, compute_verdict
from qualitygate.models.stages import (
    CLASSIFIED_CATEGORIES,
    DEFAULT_STAGE_DESCRIPTORS,
    POLICY_STAGE,
    FailureReason,
    StageCategory,
    StageDescriptor,
    StageResult,
    StageStatus,
)

__all__ = [
    # issues
    "SeverityTier",
    "SourceLocation",
    "Issue",
    "SuppressionAnnotation",
    # stages
    "StageCategory",
    "StageStatus",
    "FailureReason",
    "StageDescriptor",
    "StageResult",
    "CLASSIFIED_CATEGORIES",
    "DEFAULT_STAGE_DESCRIPTORS",
    "POLICY_STAGE",
    # reports
    "Verdict",
    "Report",
    "compute_verdict",
    # config
    "RunOptions",
]
