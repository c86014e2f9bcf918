"""Pydantic schemas for recovery results and posture assessments."""

from recoverability.schemas.posture import (
    AdvisoryFinding,
    AssessmentBundle,
    ComplianceScore,
    FieldDefault,
    FindingSeverity,
    IngestionSource,
    IngestionStatus,
    MetricDelta,
    PostureDelta,
    PostureSnapshot,
    SourceKind,
    SubScore,
    SummaryMetrics,
    TrendStatus,
    ValidationSummary,
)
from recoverability.schemas.results import (
    Platform,
    RecoveryValidationResult,
    TestCategory,
    infer_test_category,
)
from recoverability.schemas.sources import (
    HealthCheckEntry,
    ManualResultRow,
    RestoreJobBundle,
    SureBackupTestEntry,
    SureBackupTestList,
    VerificationRecord,
)

__all__ = [
    # Results
    "Platform",
    "TestCategory",
    "RecoveryValidationResult",
    "infer_test_category",
    # Sources
    "SureBackupTestEntry",
    "SureBackupTestList",
    "VerificationRecord",
    "HealthCheckEntry",
    "RestoreJobBundle",
    "ManualResultRow",
    # Posture
    "SourceKind",
    "IngestionStatus",
    "IngestionSource",
    "FieldDefault",
    "SummaryMetrics",
    "ValidationSummary",
    "SubScore",
    "ComplianceScore",
    "FindingSeverity",
    "AdvisoryFinding",
    "MetricDelta",
    "PostureDelta",
    "PostureSnapshot",
    "TrendStatus",
    "AssessmentBundle",
]
