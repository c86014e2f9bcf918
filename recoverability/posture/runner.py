"""Assessment runner.

Drives one batch run: ingest, summarize, score, evaluate findings, compare
with the prior snapshot and persist a new one. Each run gets a fresh
RunContext so no state leaks between runs in a long-lived process.
"""

import logging
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from recoverability.core.config import Settings, get_settings
from recoverability.posture.advisory import evaluate_findings
from recoverability.posture.context import RunContext
from recoverability.posture.errors import NoResultsIngestedError, SnapshotStoreError
from recoverability.posture.ingestion import IngestionPlan, ingest_sources
from recoverability.posture.scoring import compute_compliance_score
from recoverability.posture.store import SnapshotStore, get_snapshot_store
from recoverability.posture.summary import build_summary
from recoverability.posture.trend import compute_delta
from recoverability.schemas.posture import (
    AssessmentBundle,
    PostureSnapshot,
    SourceKind,
    TrendStatus,
)
from recoverability.schemas.results import Platform

logger = logging.getLogger(__name__)


class AssessmentOptions(BaseModel):
    """Per-run configuration, derived from settings and optionally overridden."""

    organization: str = "Default"
    sla_platforms: list[Platform] = Field(default_factory=list)
    default_rto_target_minutes: int = Field(0, ge=0)
    stale_days: int = Field(30, ge=1)
    positive_pass_rate_threshold: float = Field(95.0, ge=0, le=100)
    frameworks: list[str] = Field(default_factory=list)
    snapshot_dir: str | None = None
    snapshot_backend: str = "json"
    snapshot_database_url: str | None = None
    patterns: dict[SourceKind, str] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides) -> "AssessmentOptions":
        """Build options from settings, ignoring overrides that are None."""
        settings = settings or get_settings()
        values = {
            "organization": settings.organization,
            "sla_platforms": settings.sla_platforms,
            "default_rto_target_minutes": settings.default_rto_target_minutes,
            "stale_days": settings.stale_days,
            "positive_pass_rate_threshold": settings.positive_pass_rate_threshold,
            "frameworks": settings.frameworks,
            "snapshot_dir": settings.snapshot_dir,
            "snapshot_backend": settings.snapshot_backend,
            "snapshot_database_url": settings.snapshot_database_url,
            "patterns": {
                SourceKind.SUREBACKUP: settings.surebackup_file_pattern,
                SourceKind.VERIFICATION: settings.verification_file_pattern,
                SourceKind.RESTORE_JOB: settings.restore_job_file_pattern,
                SourceKind.MANUAL_CSV: settings.manual_file_pattern,
            },
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class PostureAssessmentRunner:
    """Runs recoverability posture assessments."""

    def __init__(self, options: AssessmentOptions, store: SnapshotStore | None = None):
        self.options = options
        self.store = store if store is not None else get_snapshot_store(
            options.snapshot_backend,
            options.snapshot_dir,
            options.snapshot_database_url,
        )

    def run(self, plan: IngestionPlan, as_of: datetime | None = None) -> AssessmentBundle:
        """Run one assessment over the sources in a plan.

        Args:
            plan: Sources to ingest
            as_of: Reference time for staleness (defaults to now)

        Returns:
            AssessmentBundle with summary, score, findings and trend

        Raises:
            NoResultsIngestedError: If no source yielded any result
        """
        opts = self.options
        context = RunContext(organization=opts.organization)
        as_of = as_of or context.started_at
        logger.info(f"Starting recoverability posture assessment for {opts.organization}")

        results = ingest_sources(
            plan,
            context,
            patterns=opts.patterns or None,
            default_rto_target_minutes=opts.default_rto_target_minutes,
        )
        if not results:
            raise NoResultsIngestedError(
                details={
                    "skipped": [
                        {"kind": s.kind.value, "location": s.location, "reason": s.reason}
                        for s in context.skipped_sources
                    ]
                }
            )

        summary = build_summary(results, timestamp=as_of)
        score = compute_compliance_score(
            summary,
            required_platforms=opts.sla_platforms,
            stale_days=opts.stale_days,
            sources=context.sources,
            as_of=as_of,
        )
        findings = evaluate_findings(
            summary,
            required_platforms=opts.sla_platforms,
            stale_days=opts.stale_days,
            pass_rate_threshold=opts.positive_pass_rate_threshold,
            as_of=as_of,
        )

        bundle = AssessmentBundle(
            organization=opts.organization,
            run_id=summary.run_id,
            generated_at=datetime.now(UTC),
            summary=summary,
            score=score,
            findings=findings,
            sources=context.sources,
            field_defaults=context.field_defaults,
            frameworks=opts.frameworks,
        )
        self._apply_trend(bundle)

        logger.info(
            f"Assessment {bundle.run_id} complete: score {score.overall_score} ({score.grade}), "
            f"{len(findings)} findings, trend {bundle.trend_status.value}"
        )
        return bundle

    def _apply_trend(self, bundle: AssessmentBundle) -> None:
        """Compare with the prior snapshot, then persist this run's snapshot."""
        if self.store is None:
            logger.info("No snapshot location configured; trend tracking disabled")
            bundle.trend_status = TrendStatus.DISABLED
            return

        # Read before write so the lookup never depends on this run's own snapshot
        try:
            prior = self.store.latest_prior(bundle.organization, exclude_run_id=bundle.run_id)
        except SnapshotStoreError as e:
            logger.warning(f"Prior snapshot lookup failed, establishing baseline: {e}")
            prior = None

        if prior is None:
            logger.info(f"No prior snapshot for {bundle.organization}; this run establishes the baseline")
            bundle.trend_status = TrendStatus.BASELINE
        else:
            bundle.delta = compute_delta(prior, bundle.summary, bundle.score, bundle.findings)
            bundle.trend_status = TrendStatus.COMPARED

        snapshot = PostureSnapshot(
            run_id=bundle.run_id,
            organization=bundle.organization,
            created_at=bundle.generated_at,
            summary=bundle.summary.metrics(),
            score=bundle.score,
            findings=bundle.findings,
            sources=bundle.sources,
            frameworks=bundle.frameworks,
        )
        try:
            bundle.snapshot_location = self.store.write(snapshot)
        except SnapshotStoreError as e:
            logger.error(f"Failed to persist posture snapshot {bundle.run_id}: {e}")


def run_assessment(
    plan: IngestionPlan,
    options: AssessmentOptions | None = None,
    as_of: datetime | None = None,
) -> AssessmentBundle:
    """Run an assessment with options taken from settings by default."""
    return PostureAssessmentRunner(options or AssessmentOptions.from_settings()).run(plan, as_of=as_of)
