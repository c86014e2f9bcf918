"""Shared fixtures for posture assessment tests."""

import pytest

from recoverability.core.config import get_settings
from recoverability.core.database import dispose_engines
from recoverability.posture.context import RunContext
from recoverability.posture.ingestion import IngestionPlan
from recoverability.posture.runner import AssessmentOptions, PostureAssessmentRunner
from recoverability.posture.store import JsonSnapshotStore
from recoverability.schemas.results import Platform
from tests.fixtures import (
    FIXED_NOW,
    MANUAL_CSV_ROWS,
    RESTORE_JOB_BUNDLES,
    SUREBACKUP_DOCUMENT,
    VERIFICATION_RECORDS,
    write_csv,
    write_json,
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep the environment and cached settings from leaking between tests."""
    for name in (
        "ORGANIZATION",
        "SLA_PLATFORMS",
        "DEFAULT_RTO_TARGET_MINUTES",
        "STALE_DAYS",
        "SNAPSHOT_DIR",
        "SNAPSHOT_BACKEND",
        "SNAPSHOT_DATABASE_URL",
        "OUTPUT_DIR",
        "NOTIFICATION_ENABLED",
        "TEAMS_WEBHOOK_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    # No stray .env file is picked up from the test working directory
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    dispose_engines()


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def run_context():
    """A fresh run context started at the fixed reference time."""
    return RunContext(organization="Contoso", started_at=FIXED_NOW)


@pytest.fixture
def options():
    """Assessment options without history or SLA platforms."""
    return AssessmentOptions(organization="Contoso")


@pytest.fixture
def results_dir(tmp_path):
    """A results directory holding one file of every source kind."""
    directory = tmp_path / "results"
    directory.mkdir()
    write_json(directory / "surebackup_ahv_results.json", SUREBACKUP_DOCUMENT)
    write_json(directory / "azure_verification.json", VERIFICATION_RECORDS)
    write_json(directory / "aws_restore_jobs.json", RESTORE_JOB_BUNDLES)
    write_csv(directory / "manual_results.csv", MANUAL_CSV_ROWS)
    return directory


@pytest.fixture
def manual_csv(tmp_path):
    """The three-row manual CSV."""
    return write_csv(tmp_path / "manual.csv", MANUAL_CSV_ROWS)


@pytest.fixture
def bundle(manual_csv):
    """Assessment of the manual CSV with Azure and AWS required, no history."""
    options = AssessmentOptions(organization="Contoso", sla_platforms=[Platform.AZURE, Platform.AWS])
    return PostureAssessmentRunner(options).run(IngestionPlan(manual_csv_paths=[str(manual_csv)]))


@pytest.fixture
def compared_bundle(manual_csv, tmp_path):
    """Second assessment of the manual CSV against a JSON snapshot history."""
    store = JsonSnapshotStore(tmp_path / "history")
    options = AssessmentOptions(organization="Contoso")
    plan = IngestionPlan(manual_csv_paths=[str(manual_csv)])
    PostureAssessmentRunner(options, store=store).run(plan)
    return PostureAssessmentRunner(options, store=store).run(plan)
