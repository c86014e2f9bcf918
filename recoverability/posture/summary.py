"""Summary aggregator: reduces normalized results to run statistics."""

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from recoverability.schemas.posture import ValidationSummary
from recoverability.schemas.results import Platform, RecoveryValidationResult


def build_summary(
    results: Sequence[RecoveryValidationResult],
    timestamp: datetime | None = None,
) -> ValidationSummary:
    """Aggregate results into pass-rate, RTO and platform statistics.

    RTO statistics only consider results carrying an RTO verdict. Every
    rate is 0 rather than an error when its population is empty.

    Args:
        results: Normalized results of one run
        timestamp: Summary construction time (defaults to now)

    Returns:
        ValidationSummary with a fresh run ID
    """
    platforms: dict[Platform, None] = {}
    vm_names: dict[str, None] = {}
    passed = 0

    for result in results:
        platforms.setdefault(result.platform, None)
        vm_names.setdefault(result.vm_name, None)
        if result.passed:
            passed += 1

    total = len(results)
    pass_rate = round(passed / total * 100, 1) if total else 0.0

    rto_tagged = [r for r in results if r.rto_met is not None]
    rto_met = sum(1 for r in rto_tagged if r.rto_met)
    rto_actuals = [r.rto_actual_minutes for r in rto_tagged if r.rto_actual_minutes is not None]
    avg_rto = round(sum(rto_actuals) / len(rto_actuals), 1) if rto_actuals else 0.0
    rto_compliance = round(rto_met / len(rto_tagged) * 100, 1) if rto_tagged else 0.0

    return ValidationSummary(
        run_id=str(uuid.uuid4()),
        timestamp=timestamp or datetime.now(UTC),
        platforms=list(platforms),
        total_vms=len(vm_names),
        total_tests=total,
        passed_tests=passed,
        failed_tests=total - passed,
        pass_rate=pass_rate,
        rto_tagged_tests=len(rto_tagged),
        avg_rto_minutes=avg_rto,
        rto_compliance_rate=rto_compliance,
        overall_success=total > 0 and passed == total,
        results=list(results),
    )
