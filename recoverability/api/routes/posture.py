"""Posture assessment API routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from recoverability.core.config import Settings, get_settings
from recoverability.core.notifications import notify_assessment
from recoverability.posture.errors import NoResultsIngestedError, SnapshotStoreError
from recoverability.posture.exports import export_all
from recoverability.posture.ingestion import IngestionPlan
from recoverability.posture.runner import AssessmentOptions, PostureAssessmentRunner
from recoverability.posture.store import SnapshotStore, get_snapshot_store
from recoverability.schemas.api import AssessmentRequest, AssessmentResponse
from recoverability.schemas.posture import PostureSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/posture",
    tags=["posture"],
)


def get_store(settings: Settings = Depends(get_settings)) -> SnapshotStore | None:
    """Snapshot store configured for the service, or None."""
    return get_snapshot_store(
        settings.snapshot_backend,
        settings.snapshot_dir,
        settings.snapshot_database_url,
    )


def _require_store(store: SnapshotStore | None) -> SnapshotStore:
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Snapshot history is not configured",
        )
    return store


@router.post("/assessments", response_model=AssessmentResponse)
async def run_posture_assessment(
    request: AssessmentRequest,
    settings: Settings = Depends(get_settings),
    store: SnapshotStore | None = Depends(get_store),
) -> AssessmentResponse:
    """Run a recoverability posture assessment.

    Reads the named result files (and any files discovered in the results
    directory), scores them, evaluates findings and records a snapshot
    when history is configured.
    """
    plan = IngestionPlan(
        surebackup_paths=request.surebackup_paths,
        verification_paths=request.verification_paths,
        restore_job_paths=request.restore_job_paths,
        manual_csv_paths=request.manual_csv_paths,
        results_dir=request.results_dir,
    )
    if plan.is_empty:
        raise HTTPException(
            status_code=422,
            detail="No result sources specified",
        )

    options = AssessmentOptions.from_settings(
        settings,
        organization=request.organization,
        sla_platforms=request.sla_platforms,
        default_rto_target_minutes=request.default_rto_target_minutes,
        stale_days=request.stale_days,
    )
    runner = PostureAssessmentRunner(options, store=store)

    try:
        bundle = await run_in_threadpool(runner.run, plan)
    except NoResultsIngestedError as e:
        logger.warning(f"Assessment for {options.organization} ingested no results")
        raise HTTPException(
            status_code=422,
            detail={"error": str(e), "skipped": e.details.get("skipped", [])},
        ) from e

    response = AssessmentResponse(bundle=bundle)
    if request.export:
        response.exports = await run_in_threadpool(export_all, bundle, settings.output_dir)
    if request.notify:
        response.notification = await notify_assessment(bundle)
    return response


@router.get("/snapshots/latest", response_model=PostureSnapshot)
async def get_latest_snapshot(
    organization: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
    store: SnapshotStore | None = Depends(get_store),
) -> PostureSnapshot:
    """Get the most recent snapshot for an organization."""
    org = organization or settings.organization
    try:
        snapshot = _require_store(store).latest(org)
    except SnapshotStoreError as e:
        logger.error(f"Snapshot lookup failed for {org}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No snapshots found for {org}",
        )
    return snapshot


@router.get("/snapshots", response_model=list[PostureSnapshot])
async def list_snapshots(
    organization: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=500),
    settings: Settings = Depends(get_settings),
    store: SnapshotStore | None = Depends(get_store),
) -> list[PostureSnapshot]:
    """List snapshots for an organization, newest first."""
    org = organization or settings.organization
    try:
        return _require_store(store).history(org, limit=limit)
    except SnapshotStoreError as e:
        logger.error(f"Snapshot history failed for {org}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e
