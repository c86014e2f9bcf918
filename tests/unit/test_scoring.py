"""Tests for the compliance scorer."""

from datetime import timedelta

import pytest

from recoverability.posture.scoring import (
    SCORE_WEIGHTS,
    compute_compliance_score,
    grade_for_score,
)
from recoverability.posture.summary import build_summary
from recoverability.schemas.posture import IngestionSource, IngestionStatus, SourceKind
from recoverability.schemas.results import Platform
from tests.fixtures import FIXED_NOW, make_result


def _score(results, **kwargs):
    kwargs.setdefault("as_of", FIXED_NOW)
    return compute_compliance_score(build_summary(results, FIXED_NOW), **kwargs)


class TestWeights:
    """Tests for the disclosed weights."""

    def test_weights_sum_to_100(self):
        """Test the weights sum to 100."""
        assert sum(SCORE_WEIGHTS.values()) == 100

    def test_score_discloses_weights(self):
        """Test the score object carries every weight."""
        score = _score([make_result()])

        assert score.weights == SCORE_WEIGHTS
        assert score.weights_total == 100
        assert [s.name for s in score.sub_scores] == list(SCORE_WEIGHTS)


class TestGrades:
    """Tests for grade bands."""

    @pytest.mark.parametrize(
        "score,grade",
        [(100, "A"), (90, "A"), (89.9, "B"), (75, "B"), (60, "C"), (40, "D"), (39.9, "F"), (0, "F")],
    )
    def test_grade_bands(self, score, grade):
        """Test band boundaries."""
        assert grade_for_score(score) == grade

    def test_grades_are_monotonic(self):
        """Test a higher score never gets a worse grade."""
        order = "ABCDF"
        grades = [grade_for_score(s / 2) for s in range(0, 201)]

        assert all(order.index(a) >= order.index(b) for a, b in zip(grades, grades[1:]))


class TestSubScores:
    """Tests for individual dimensions."""

    def test_perfect_run_scores_100(self):
        """Test a fresh, passing, RTO-compliant run on every required platform."""
        results = [
            make_result(platform=Platform.AZURE, rto_target_minutes=10, rto_actual_minutes=5, rto_met=True),
            make_result(platform=Platform.AWS, rto_target_minutes=10, rto_actual_minutes=5, rto_met=True),
        ]
        score = _score(results, required_platforms=[Platform.AZURE, Platform.AWS])

        assert score.overall_score == 100.0
        assert score.grade == "A"

    def test_coverage_counts_required_platforms(self):
        """Test coverage is the share of required platforms represented."""
        score = _score(
            [make_result(platform=Platform.AZURE)],
            required_platforms=[Platform.AZURE, Platform.AWS, Platform.VMWARE, Platform.NUTANIX_AHV],
        )

        assert score.get("coverage").score == 25.0

    def test_coverage_without_required_platforms(self):
        """Test coverage is full with any platform present and nothing required."""
        assert _score([make_result()]).get("coverage").score == 100.0
        assert _score([]).get("coverage").score == 0.0

    def test_rto_full_when_untagged(self):
        """Test the RTO dimension is full when no result carries a target."""
        assert _score([make_result()]).get("rto").score == 100.0

    def test_rto_uses_compliance_rate(self):
        """Test the RTO dimension follows the compliance rate."""
        results = [
            make_result(rto_target_minutes=10, rto_actual_minutes=5, rto_met=True),
            make_result(vm_name="b", rto_target_minutes=10, rto_actual_minutes=50, rto_met=False),
        ]

        assert _score(results).get("rto").score == 50.0

    def test_recency_counts_results_inside_window(self):
        """Test results older than the staleness window lower recency."""
        results = [
            make_result(),
            make_result(vm_name="old", timestamp=FIXED_NOW - timedelta(days=45)),
        ]

        assert _score(results, stale_days=30).get("recency").score == 50.0
        assert _score(results, stale_days=60).get("recency").score == 100.0

    def test_automation_weighs_results_by_source(self):
        """Test manual CSV results count against automation."""
        sources = [
            IngestionSource(kind=SourceKind.VERIFICATION, location="a.json", result_count=3),
            IngestionSource(kind=SourceKind.MANUAL_CSV, location="m.csv", result_count=1),
            IngestionSource(
                kind=SourceKind.SUREBACKUP,
                location="gone.json",
                status=IngestionStatus.SKIPPED,
                reason="file does not exist",
            ),
        ]

        assert _score([make_result()], sources=sources).get("automation").score == 75.0

    def test_automation_full_without_sources(self):
        """Test results with no provenance are treated as automated."""
        assert _score([make_result()]).get("automation").score == 100.0

    def test_failures_lower_score(self):
        """Test failing results lower the overall score and grade."""
        good = _score([make_result(), make_result(vm_name="b")])
        bad = _score([make_result(passed=False), make_result(vm_name="b", passed=False)])

        assert bad.overall_score < good.overall_score
        assert bad.get("pass_rate").score == 0.0
        assert bad.overall_score == 65.0
        assert bad.grade == "C"
