"""Recoverability posture schemas.

Summary, compliance score, advisory findings, snapshots and the result
bundle handed to report renderers.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from recoverability.schemas.results import Platform, RecoveryValidationResult


class SourceKind(str, Enum):
    """Kinds of result sources the ingestion layer understands."""

    SUREBACKUP = "surebackup"
    VERIFICATION = "verification"
    RESTORE_JOB = "restore_job"
    MANUAL_CSV = "manual_csv"
    DIRECTORY = "directory"

    @property
    def automated(self) -> bool:
        """Manual CSV imports cannot prove the test itself was automated."""
        return self not in (SourceKind.MANUAL_CSV, SourceKind.DIRECTORY)


class IngestionStatus(str, Enum):
    INGESTED = "ingested"
    SKIPPED = "skipped"


class IngestionSource(BaseModel):
    """Provenance of one input source."""

    kind: SourceKind
    location: str = Field(..., description="File path or other source identifier")
    status: IngestionStatus = IngestionStatus.INGESTED
    record_count: int = Field(0, description="Records read from the source")
    result_count: int = Field(0, description="Normalized results produced")
    platforms: list[Platform] = Field(default_factory=list)
    reason: str | None = Field(None, description="Why the source was skipped")

    @property
    def automated(self) -> bool:
        return self.kind.automated


class FieldDefault(BaseModel):
    """A record field that resolved to its default during normalization."""

    source: str
    record_index: int
    field: str
    assumed: str
    reason: str


class SummaryMetrics(BaseModel):
    """Aggregate metrics of one assessment run."""

    run_id: str = Field(..., description="Unique per summary construction")
    timestamp: datetime
    platforms: list[Platform] = Field(default_factory=list)
    total_vms: int = 0
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    pass_rate: float = Field(0.0, ge=0, le=100)
    rto_tagged_tests: int = 0
    avg_rto_minutes: float = 0.0
    rto_compliance_rate: float = Field(0.0, ge=0, le=100)
    overall_success: bool = False


class ValidationSummary(SummaryMetrics):
    """Summary over a set of results; keeps the results it was built from."""

    results: list[RecoveryValidationResult] = Field(default_factory=list)

    def metrics(self) -> SummaryMetrics:
        """Get the summary fields without the result collection."""
        return SummaryMetrics.model_validate(self.model_dump(exclude={"results"}))


class SubScore(BaseModel):
    """One weighted dimension of the compliance score."""

    name: str
    score: float = Field(..., ge=0, le=100)
    weight: int = Field(..., ge=0, le=100, description="Percentage weight")
    basis: str = Field("", description="How the score was derived")

    @property
    def weighted(self) -> float:
        return self.score * self.weight / 100


class ComplianceScore(BaseModel):
    """Composite 0-100 recoverability score with its weighted breakdown."""

    sub_scores: list[SubScore]
    overall_score: float = Field(..., ge=0, le=100)
    grade: str

    @property
    def weights(self) -> dict[str, int]:
        return {s.name: s.weight for s in self.sub_scores}

    @property
    def weights_total(self) -> int:
        return sum(s.weight for s in self.sub_scores)

    def get(self, name: str) -> SubScore | None:
        """Get a sub-score by name."""
        for sub in self.sub_scores:
            if sub.name == name:
                return sub
        return None


class FindingSeverity(str, Enum):
    """Severity of an advisory finding."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"


class AdvisoryFinding(BaseModel):
    """One advisory statement produced by rule evaluation."""

    severity: FindingSeverity
    category: str
    title: str
    detail: str
    recommendation: str
    framework: str = Field(..., description="Compliance framework clauses cited")

    def to_export_row(self) -> dict[str, Any]:
        return {
            "Severity": self.severity.value,
            "Category": self.category,
            "Title": self.title,
            "Detail": self.detail,
            "Recommendation": self.recommendation,
            "Framework": self.framework,
        }


class MetricDelta(BaseModel):
    """Change of one headline metric against the prior snapshot."""

    metric: str
    prior: float
    current: float
    change: float


class PostureDelta(BaseModel):
    """Comparison of the current run with the most recent prior snapshot."""

    prior_run_id: str
    prior_created_at: datetime
    metrics: list[MetricDelta]

    def get(self, metric: str) -> MetricDelta | None:
        for item in self.metrics:
            if item.metric == metric:
                return item
        return None


class PostureSnapshot(BaseModel):
    """Persisted, immutable record of one assessment run."""

    run_id: str
    organization: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    summary: SummaryMetrics
    score: ComplianceScore
    findings: list[AdvisoryFinding] = Field(default_factory=list)
    sources: list[IngestionSource] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class TrendStatus(str, Enum):
    """Whether and how the run was compared with history."""

    DISABLED = "disabled"
    BASELINE = "baseline"
    COMPARED = "compared"


class AssessmentBundle(BaseModel):
    """Everything one assessment run produced, for renderers and exports."""

    organization: str
    run_id: str
    generated_at: datetime
    summary: ValidationSummary
    score: ComplianceScore
    findings: list[AdvisoryFinding] = Field(default_factory=list)
    trend_status: TrendStatus = TrendStatus.DISABLED
    delta: PostureDelta | None = None
    sources: list[IngestionSource] = Field(default_factory=list)
    field_defaults: list[FieldDefault] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    snapshot_location: str | None = None

    @property
    def high_findings(self) -> list[AdvisoryFinding]:
        return [f for f in self.findings if f.severity == FindingSeverity.HIGH]

    def findings_by_severity(self) -> dict[FindingSeverity, list[AdvisoryFinding]]:
        """Group findings by severity, most severe first."""
        grouped: dict[FindingSeverity, list[AdvisoryFinding]] = {s: [] for s in FindingSeverity}
        for finding in self.findings:
            grouped[finding.severity].append(finding)
        return grouped
