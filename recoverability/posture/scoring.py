"""Compliance scorer.

Maps a ValidationSummary to a 0-100 score from five independently computed
sub-scores. The weights are disclosed on the score object and sum to 100.

| Dimension  | Weight | Basis                                             |
|------------|--------|---------------------------------------------------|
| coverage   | 20     | required platforms represented in the results     |
| pass_rate  | 35     | summary pass rate                                 |
| rto        | 20     | RTO compliance rate, 100 when no target applies   |
| recency    | 15     | share of results inside the staleness window      |
| automation | 10     | share of results from automated sources           |
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from recoverability.schemas.posture import (
    ComplianceScore,
    IngestionSource,
    IngestionStatus,
    SubScore,
    ValidationSummary,
)
from recoverability.schemas.results import Platform

logger = logging.getLogger(__name__)

SCORE_WEIGHTS: dict[str, int] = {
    "coverage": 20,
    "pass_rate": 35,
    "rto": 20,
    "recency": 15,
    "automation": 10,
}

# Checked top-down; first threshold the score reaches wins
GRADE_THRESHOLDS: list[tuple[float, str]] = [
    (90.0, "A"),
    (75.0, "B"),
    (60.0, "C"),
    (40.0, "D"),
]
LOWEST_GRADE = "F"


def grade_for_score(score: float) -> str:
    """Map a 0-100 score onto a letter grade."""
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return LOWEST_GRADE


def _clamp(value: float) -> float:
    return round(min(100.0, max(0.0, value)), 1)


def _coverage_score(
    summary: ValidationSummary, required_platforms: Sequence[Platform]
) -> tuple[float, str]:
    if not required_platforms:
        if summary.platforms:
            return 100.0, "no required platforms configured; at least one platform present"
        return 0.0, "no platforms present"
    present = [p for p in required_platforms if p in summary.platforms]
    score = len(present) / len(required_platforms) * 100
    return score, f"{len(present)} of {len(required_platforms)} required platforms represented"


def _rto_score(summary: ValidationSummary) -> tuple[float, str]:
    if summary.rto_tagged_tests == 0:
        return 100.0, "no results carry an RTO target"
    return (
        summary.rto_compliance_rate,
        f"{summary.rto_compliance_rate}% of {summary.rto_tagged_tests} RTO-tagged results met target",
    )


def _recency_score(
    summary: ValidationSummary, stale_days: int, as_of: datetime
) -> tuple[float, str]:
    if not summary.results:
        return 0.0, "no results"
    cutoff = as_of - timedelta(days=stale_days)
    fresh = sum(1 for r in summary.results if r.timestamp >= cutoff)
    score = fresh / len(summary.results) * 100
    return score, f"{fresh} of {len(summary.results)} results within {stale_days} days"


def _automation_score(sources: Sequence[IngestionSource] | None) -> tuple[float, str]:
    ingested = [s for s in sources or [] if s.status == IngestionStatus.INGESTED]
    total = sum(s.result_count for s in ingested)
    if total == 0:
        return 100.0, "all results treated as automated"
    automated = sum(s.result_count for s in ingested if s.automated)
    score = automated / total * 100
    return score, f"{automated} of {total} results from automated sources"


def compute_compliance_score(
    summary: ValidationSummary,
    *,
    required_platforms: Sequence[Platform] | None = None,
    stale_days: int = 30,
    sources: Sequence[IngestionSource] | None = None,
    as_of: datetime | None = None,
) -> ComplianceScore:
    """Compute the weighted compliance score for a summary.

    Args:
        summary: The run summary
        required_platforms: Platforms that must be represented
        stale_days: Age after which a result no longer counts as recent
        sources: Ingestion provenance used for the automation dimension
        as_of: Reference time for recency (defaults to now)

    Returns:
        ComplianceScore with sub-scores, weights and grade
    """
    as_of = as_of or datetime.now(UTC)
    raw = {
        "coverage": _coverage_score(summary, required_platforms or []),
        "pass_rate": (summary.pass_rate, f"{summary.passed_tests} of {summary.total_tests} tests passed"),
        "rto": _rto_score(summary),
        "recency": _recency_score(summary, stale_days, as_of),
        "automation": _automation_score(sources),
    }

    sub_scores = [
        SubScore(name=name, score=_clamp(raw[name][0]), weight=weight, basis=raw[name][1])
        for name, weight in SCORE_WEIGHTS.items()
    ]
    overall = _clamp(sum(s.weighted for s in sub_scores))
    grade = grade_for_score(overall)

    logger.info(
        f"Compliance score {overall} ({grade}): "
        + ", ".join(f"{s.name}={s.score}" for s in sub_scores)
    )
    return ComplianceScore(sub_scores=sub_scores, overall_score=overall, grade=grade)
