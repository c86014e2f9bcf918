"""Advisory rule engine.

Evaluates a fixed, ordered rule set against a run's results and summary.
Each rule is independent; positive findings are emitted alongside negative
ones. Output depends only on the inputs and the reference time passed in.
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from recoverability.posture.constants import FRAMEWORK_CITATIONS, FindingCategory
from recoverability.schemas.posture import AdvisoryFinding, FindingSeverity, ValidationSummary
from recoverability.schemas.results import Platform, RecoveryValidationResult

logger = logging.getLogger(__name__)


def _finding(
    severity: FindingSeverity,
    category: FindingCategory,
    title: str,
    detail: str,
    recommendation: str,
) -> AdvisoryFinding:
    return AdvisoryFinding(
        severity=severity,
        category=category.value,
        title=title,
        detail=detail,
        recommendation=recommendation,
        framework=FRAMEWORK_CITATIONS[category],
    )


def _distinct(values) -> list:
    """Distinct values in first-seen order."""
    return list(dict.fromkeys(values))


def _platform_names(platforms) -> str:
    return ", ".join(p.value for p in platforms)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def coverage_gap_findings(
    summary: ValidationSummary, required_platforms: Sequence[Platform]
) -> list[AdvisoryFinding]:
    """One High finding per required platform absent from the results."""
    findings = []
    for platform in required_platforms:
        if platform in summary.platforms:
            continue
        findings.append(
            _finding(
                FindingSeverity.HIGH,
                FindingCategory.COVERAGE_GAP,
                f"No recovery validation evidence for {platform.value}",
                f"{platform.value} is a required SLA platform but no recovery "
                "test results were ingested for it in this assessment.",
                f"Schedule recurring recovery validation for {platform.value} workloads "
                "and include the results in the next assessment.",
            )
        )
    return findings


def recovery_failure_finding(results: Sequence[RecoveryValidationResult]) -> AdvisoryFinding | None:
    """A single High finding itemizing every failed test."""
    failed = [r for r in results if not r.passed]
    if not failed:
        return None
    vms = _distinct(r.vm_name for r in failed)
    platforms = _distinct(r.platform for r in failed)
    return _finding(
        FindingSeverity.HIGH,
        FindingCategory.RECOVERY_FAILURE,
        f"{_plural(len(failed), 'recovery test')} failed",
        f"{len(failed)} of {len(results)} tests failed on {_plural(len(vms), 'VM')} "
        f"({', '.join(vms)}) across {_platform_names(platforms)}.",
        "Investigate the failed restores, remediate the underlying backup or "
        "configuration issue, and re-run validation for the affected VMs.",
    )


def sla_violation_finding(results: Sequence[RecoveryValidationResult]) -> AdvisoryFinding | None:
    """A single High finding when any RTO-tagged result missed its target."""
    violations = [r for r in results if r.rto_met is False]
    if not violations:
        return None
    actuals = [r.rto_actual_minutes for r in violations if r.rto_actual_minutes is not None]
    avg_actual = round(sum(actuals) / len(actuals), 1) if actuals else 0.0
    avg_target = round(sum(r.rto_target_minutes for r in violations) / len(violations), 1)
    vms = _distinct(r.vm_name for r in violations)
    return _finding(
        FindingSeverity.HIGH,
        FindingCategory.SLA_VIOLATION,
        f"RTO target missed for {_plural(len(vms), 'VM')}",
        f"{len(violations)} RTO-tagged results exceeded their target. Average actual RTO "
        f"{avg_actual} min against an average target of {avg_target} min. "
        f"Affected VMs: {', '.join(vms)}.",
        "Review restore performance for the affected VMs (proxy sizing, repository "
        "throughput, restore mode) or renegotiate the RTO with the workload owner.",
    )


def stale_evidence_finding(
    results: Sequence[RecoveryValidationResult], stale_days: int, as_of: datetime
) -> AdvisoryFinding | None:
    """A Medium finding when results predate the staleness window."""
    cutoff = as_of - timedelta(days=stale_days)
    stale = [r for r in results if r.timestamp < cutoff]
    if not stale:
        return None
    oldest = min(r.timestamp for r in stale)
    age_days = (as_of - oldest).days
    platforms = _distinct(r.platform for r in stale)
    return _finding(
        FindingSeverity.MEDIUM,
        FindingCategory.STALE_EVIDENCE,
        f"{_plural(len(stale), 'result')} older than {stale_days} days",
        f"{len(stale)} results on {_platform_names(platforms)} predate the {stale_days}-day "
        f"evidence window; the oldest is {age_days} days old.",
        "Re-run recovery validation so the assessment reflects current backups.",
    )


def measurement_gap_finding(results: Sequence[RecoveryValidationResult]) -> AdvisoryFinding | None:
    """A Medium finding only when no result carries an RTO target at all."""
    if not results or any(r.rto_target_minutes > 0 for r in results):
        return None
    return _finding(
        FindingSeverity.MEDIUM,
        FindingCategory.MEASUREMENT_GAP,
        "Recovery time objectives are not being measured",
        f"None of the {len(results)} results carry an RTO target, so recovery "
        "speed cannot be evidenced against any service level.",
        "Define RTO targets per workload tier and supply them to the assessment "
        "(per record or via the default RTO target).",
    )


def single_platform_finding(
    summary: ValidationSummary, required_platforms: Sequence[Platform]
) -> AdvisoryFinding | None:
    """A Low finding when one platform is tested and none were required."""
    if required_platforms or len(summary.platforms) != 1:
        return None
    platform = summary.platforms[0]
    return _finding(
        FindingSeverity.LOW,
        FindingCategory.SINGLE_PLATFORM,
        f"Recovery validation covers only {platform.value}",
        f"All {summary.total_tests} results come from {platform.value} and no "
        "required platform list was supplied.",
        "Confirm whether other platforms host protected workloads and, if so, "
        "configure them as SLA platforms.",
    )


def positive_findings(
    results: Sequence[RecoveryValidationResult],
    summary: ValidationSummary,
    pass_rate_threshold: float,
) -> list[AdvisoryFinding]:
    """Info findings for a high pass rate and for full RTO compliance."""
    findings = []
    if summary.total_tests and summary.pass_rate >= pass_rate_threshold:
        findings.append(
            _finding(
                FindingSeverity.INFO,
                FindingCategory.POSITIVE_PASS_RATE,
                f"Recovery test pass rate of {summary.pass_rate}%",
                f"{summary.passed_tests} of {summary.total_tests} tests passed, meeting "
                f"the {pass_rate_threshold}% bar.",
                "Maintain the current validation schedule.",
            )
        )
    tagged = [r for r in results if r.rto_met is not None]
    if tagged and all(r.rto_met for r in tagged):
        findings.append(
            _finding(
                FindingSeverity.INFO,
                FindingCategory.POSITIVE_RTO,
                "All measured recoveries met their RTO",
                f"{len(tagged)} RTO-tagged results met their target "
                f"(average actual RTO {summary.avg_rto_minutes} min).",
                "Keep RTO targets under review as workloads grow.",
            )
        )
    return findings


def evaluate_findings(
    summary: ValidationSummary,
    *,
    required_platforms: Sequence[Platform] | None = None,
    stale_days: int = 30,
    pass_rate_threshold: float = 95.0,
    as_of: datetime | None = None,
) -> list[AdvisoryFinding]:
    """Evaluate every rule in order and collect the findings.

    Args:
        summary: Run summary; its results are the rule input
        required_platforms: SLA platforms that must be represented
        stale_days: Staleness window in days
        pass_rate_threshold: Pass rate at or above which posture is praised
        as_of: Reference time for staleness (defaults to now)

    Returns:
        Findings in rule order
    """
    required = list(required_platforms or [])
    as_of = as_of or datetime.now(UTC)
    results = summary.results

    findings = coverage_gap_findings(summary, required)
    for finding in (
        recovery_failure_finding(results),
        sla_violation_finding(results),
        stale_evidence_finding(results, stale_days, as_of),
        measurement_gap_finding(results),
        single_platform_finding(summary, required),
    ):
        if finding is not None:
            findings.append(finding)
    findings.extend(positive_findings(results, summary, pass_rate_threshold))

    logger.info(
        f"Advisory evaluation produced {len(findings)} findings "
        f"({sum(1 for f in findings if f.severity == FindingSeverity.HIGH)} high)"
    )
    return findings
