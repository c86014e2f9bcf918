"""Recoverability posture assessment engine.

Turns recovery validation evidence from several backup platforms into a
scored, explained posture:

   >>> from recoverability.posture import AssessmentOptions, IngestionPlan, run_assessment
   >>> plan = IngestionPlan(manual_csv_paths=["results.csv"])
   >>> bundle = run_assessment(plan, AssessmentOptions(organization="Contoso"))
   >>> bundle.score.grade
"""

from recoverability.posture.advisory import evaluate_findings
from recoverability.posture.context import RunContext
from recoverability.posture.errors import (
    NoResultsIngestedError,
    PostureAssessmentError,
    SnapshotStoreError,
    SourceReadError,
)
from recoverability.posture.exports import export_all
from recoverability.posture.ingestion import IngestionPlan, discover_result_files, ingest_sources
from recoverability.posture.normalizer import (
    normalize_manual_rows,
    normalize_restore_jobs,
    normalize_test_list,
    normalize_verification_records,
)
from recoverability.posture.reports import ReportGenerator, generate_report
from recoverability.posture.runner import (
    AssessmentOptions,
    PostureAssessmentRunner,
    run_assessment,
)
from recoverability.posture.scoring import SCORE_WEIGHTS, compute_compliance_score, grade_for_score
from recoverability.posture.store import (
    JsonSnapshotStore,
    SnapshotStore,
    SqlSnapshotStore,
    get_snapshot_store,
)
from recoverability.posture.summary import build_summary
from recoverability.posture.trend import compute_delta

__all__ = [
    # Runner
    "AssessmentOptions",
    "PostureAssessmentRunner",
    "run_assessment",
    "RunContext",
    # Ingestion and normalization
    "IngestionPlan",
    "discover_result_files",
    "ingest_sources",
    "normalize_test_list",
    "normalize_verification_records",
    "normalize_restore_jobs",
    "normalize_manual_rows",
    # Scoring and findings
    "build_summary",
    "compute_compliance_score",
    "grade_for_score",
    "SCORE_WEIGHTS",
    "evaluate_findings",
    "compute_delta",
    # Persistence
    "SnapshotStore",
    "JsonSnapshotStore",
    "SqlSnapshotStore",
    "get_snapshot_store",
    # Output
    "export_all",
    "ReportGenerator",
    "generate_report",
    # Errors
    "PostureAssessmentError",
    "NoResultsIngestedError",
    "SourceReadError",
    "SnapshotStoreError",
]
