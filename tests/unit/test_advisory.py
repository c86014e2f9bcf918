"""Tests for the advisory rule engine."""

from datetime import timedelta

from recoverability.posture.advisory import (
    coverage_gap_findings,
    evaluate_findings,
    measurement_gap_finding,
    positive_findings,
    recovery_failure_finding,
    single_platform_finding,
    sla_violation_finding,
    stale_evidence_finding,
)
from recoverability.posture.constants import FRAMEWORK_CITATIONS, FindingCategory
from recoverability.posture.summary import build_summary
from recoverability.schemas.posture import FindingSeverity
from recoverability.schemas.results import Platform
from tests.fixtures import FIXED_NOW, make_result


def _tagged(**overrides):
    values = {"rto_target_minutes": 10, "rto_actual_minutes": 5, "rto_met": True}
    values.update(overrides)
    return make_result(**values)


class TestCoverageGap:
    """Tests for missing required platforms."""

    def test_one_finding_per_missing_platform(self):
        """Test each absent required platform gets its own High finding."""
        summary = build_summary([make_result(platform=Platform.AZURE)], FIXED_NOW)
        findings = coverage_gap_findings(
            summary, [Platform.AZURE, Platform.AWS, Platform.VMWARE]
        )

        assert [f.title for f in findings] == [
            "No recovery validation evidence for AWS",
            "No recovery validation evidence for VMware",
        ]
        assert all(f.severity == FindingSeverity.HIGH for f in findings)
        assert findings[0].framework == FRAMEWORK_CITATIONS[FindingCategory.COVERAGE_GAP]

    def test_no_required_platforms_no_findings(self):
        """Test nothing is reported without a required platform list."""
        summary = build_summary([make_result()], FIXED_NOW)

        assert coverage_gap_findings(summary, []) == []


class TestRecoveryFailure:
    """Tests for failed tests."""

    def test_single_finding_itemizes_vms(self):
        """Test all failures collapse into one finding naming each VM once."""
        results = [
            make_result(vm_name="a", passed=False),
            make_result(vm_name="a", test_name="Ping", passed=False),
            make_result(vm_name="b", platform=Platform.AWS, passed=False),
            make_result(vm_name="c"),
        ]
        finding = recovery_failure_finding(results)

        assert finding.severity == FindingSeverity.HIGH
        assert finding.category == "Recovery Failure"
        assert finding.title == "3 recovery tests failed"
        assert "3 of 4 tests failed on 2 VMs (a, b)" in finding.detail
        assert "Azure, AWS" in finding.detail

    def test_singular_title(self):
        """Test one failure reads naturally."""
        finding = recovery_failure_finding([make_result(passed=False)])

        assert finding.title == "1 recovery test failed"

    def test_no_failures_no_finding(self):
        """Test passing results produce nothing."""
        assert recovery_failure_finding([make_result()]) is None


class TestSlaViolation:
    """Tests for missed RTO targets."""

    def test_reports_average_actual_and_target(self):
        """Test the finding averages actual RTO and target over violations."""
        results = [
            _tagged(vm_name="a", rto_actual_minutes=20, rto_met=False),
            _tagged(vm_name="b", rto_target_minutes=20, rto_actual_minutes=30, rto_met=False),
            _tagged(vm_name="c"),
        ]
        finding = sla_violation_finding(results)

        assert finding.severity == FindingSeverity.HIGH
        assert finding.title == "RTO target missed for 2 VMs"
        assert "Average actual RTO 25.0 min" in finding.detail
        assert "average target of 15.0 min" in finding.detail

    def test_untagged_results_never_violate(self):
        """Test results without a target never count as violations."""
        assert sla_violation_finding([make_result(), _tagged()]) is None


class TestStaleEvidence:
    """Tests for the staleness window."""

    def test_old_results_flagged(self):
        """Test results before the window produce a Medium finding."""
        results = [
            make_result(),
            make_result(vm_name="old", timestamp=FIXED_NOW - timedelta(days=40)),
        ]
        finding = stale_evidence_finding(results, 30, FIXED_NOW)

        assert finding.severity == FindingSeverity.MEDIUM
        assert finding.title == "1 result older than 30 days"
        assert "40 days old" in finding.detail

    def test_window_boundary_is_fresh(self):
        """Test a result exactly at the cutoff is not stale."""
        results = [make_result(timestamp=FIXED_NOW - timedelta(days=30))]

        assert stale_evidence_finding(results, 30, FIXED_NOW) is None


class TestMeasurementGap:
    """Tests for missing RTO targets."""

    def test_all_untagged_flagged(self):
        """Test a run with no RTO targets at all is flagged."""
        finding = measurement_gap_finding([make_result(), make_result(vm_name="b")])

        assert finding.severity == FindingSeverity.MEDIUM
        assert "None of the 2 results" in finding.detail

    def test_any_target_suppresses_finding(self):
        """Test a single targeted result suppresses the finding."""
        assert measurement_gap_finding([make_result(), _tagged()]) is None

    def test_empty_results_not_flagged(self):
        """Test an empty result set is not a measurement gap."""
        assert measurement_gap_finding([]) is None


class TestSinglePlatform:
    """Tests for single-platform coverage."""

    def test_single_platform_without_requirements(self):
        """Test one platform and no required list gives a Low finding."""
        summary = build_summary([make_result()], FIXED_NOW)
        finding = single_platform_finding(summary, [])

        assert finding.severity == FindingSeverity.LOW
        assert finding.title == "Recovery validation covers only Azure"

    def test_required_platforms_suppress_finding(self):
        """Test a configured required list suppresses the finding."""
        summary = build_summary([make_result()], FIXED_NOW)

        assert single_platform_finding(summary, [Platform.AZURE]) is None


class TestPositiveFindings:
    """Tests for positive findings."""

    def test_pass_rate_and_rto_praised(self):
        """Test both positive findings are emitted for a clean run."""
        results = [_tagged(), _tagged(vm_name="b")]
        summary = build_summary(results, FIXED_NOW)
        findings = positive_findings(results, summary, 95.0)

        assert [f.title for f in findings] == [
            "Recovery test pass rate of 100.0%",
            "All measured recoveries met their RTO",
        ]
        assert all(f.severity == FindingSeverity.INFO for f in findings)

    def test_below_threshold_not_praised(self):
        """Test a pass rate under the threshold gets no positive finding."""
        results = [make_result(), make_result(vm_name="b", passed=False)]
        summary = build_summary(results, FIXED_NOW)

        assert positive_findings(results, summary, 95.0) == []


class TestEvaluateFindings:
    """Tests for the full rule set."""

    def test_rule_order(self):
        """Test findings follow rule order with positives last."""
        results = [
            make_result(platform=Platform.AZURE, passed=False),
            make_result(vm_name="old", timestamp=FIXED_NOW - timedelta(days=90)),
        ]
        findings = evaluate_findings(
            build_summary(results, FIXED_NOW),
            required_platforms=[Platform.AZURE, Platform.AWS],
            as_of=FIXED_NOW,
        )

        assert [f.category for f in findings] == [
            "Coverage Gap",
            "Recovery Failure",
            "Stale Evidence",
            "Measurement Gap",
        ]

    def test_manual_csv_scenario_has_single_high(self):
        """Test the three-row manual scenario yields exactly one High finding."""
        results = [
            _tagged(vm_name="db01", rto_target_minutes=30, rto_actual_minutes=20),
            _tagged(vm_name="db01", test_name="Login Check", rto_target_minutes=30, rto_actual_minutes=20),
            make_result(vm_name="web02", platform=Platform.AWS, passed=False),
        ]
        findings = evaluate_findings(
            build_summary(results, FIXED_NOW),
            required_platforms=[Platform.AZURE, Platform.AWS],
            as_of=FIXED_NOW,
        )
        high = [f for f in findings if f.severity == FindingSeverity.HIGH]

        assert len(high) == 1
        assert high[0].category == "Recovery Failure"
        assert "web02" in high[0].detail
        assert "db01" not in high[0].detail
        assert findings[-1].title == "All measured recoveries met their RTO"

    def test_evaluation_is_deterministic(self):
        """Test the same inputs give identical findings."""
        results = [make_result(passed=False), _tagged(vm_name="b", rto_met=False, rto_actual_minutes=50)]
        summary = build_summary(results, FIXED_NOW)

        first = evaluate_findings(summary, stale_days=7, as_of=FIXED_NOW)
        second = evaluate_findings(summary, stale_days=7, as_of=FIXED_NOW)

        assert first == second
