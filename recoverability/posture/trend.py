"""Trend comparison of the current run against the prior snapshot."""

import logging
from collections.abc import Sequence

from recoverability.schemas.posture import (
    AdvisoryFinding,
    ComplianceScore,
    MetricDelta,
    PostureDelta,
    PostureSnapshot,
    SummaryMetrics,
)

logger = logging.getLogger(__name__)

# Reported in this order in every delta
DELTA_METRICS = ("compliance_score", "pass_rate", "total_vms", "finding_count")


def _headline(summary: SummaryMetrics, score: ComplianceScore, finding_count: int) -> dict[str, float]:
    return {
        "compliance_score": score.overall_score,
        "pass_rate": summary.pass_rate,
        "total_vms": summary.total_vms,
        "finding_count": finding_count,
    }


def compute_delta(
    prior: PostureSnapshot,
    summary: SummaryMetrics,
    score: ComplianceScore,
    findings: Sequence[AdvisoryFinding],
) -> PostureDelta:
    """Compare the current run's headline metrics with a prior snapshot.

    Args:
        prior: Most recent snapshot of an earlier run
        summary: Current run summary
        score: Current compliance score
        findings: Current findings

    Returns:
        PostureDelta with prior, current and signed change per metric
    """
    before = _headline(prior.summary, prior.score, len(prior.findings))
    after = _headline(summary, score, len(findings))

    metrics = [
        MetricDelta(
            metric=name,
            prior=before[name],
            current=after[name],
            change=round(after[name] - before[name], 1),
        )
        for name in DELTA_METRICS
    ]
    logger.info(
        f"Compared with snapshot {prior.run_id}: "
        + ", ".join(f"{m.metric} {m.change:+}" for m in metrics)
    )
    return PostureDelta(
        prior_run_id=prior.run_id,
        prior_created_at=prior.created_at,
        metrics=metrics,
    )
