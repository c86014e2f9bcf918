"""Request and response models for the posture API."""

from pydantic import BaseModel, Field

from recoverability.schemas.posture import AssessmentBundle
from recoverability.schemas.results import Platform


class AssessmentRequest(BaseModel):
    """Run an assessment over result files readable by the server."""

    surebackup_paths: list[str] = Field(default_factory=list)
    verification_paths: list[str] = Field(default_factory=list)
    restore_job_paths: list[str] = Field(default_factory=list)
    manual_csv_paths: list[str] = Field(default_factory=list)
    results_dir: str | None = None

    # Overrides for the configured defaults
    organization: str | None = None
    sla_platforms: list[Platform] | None = None
    default_rto_target_minutes: int | None = Field(None, ge=0)
    stale_days: int | None = Field(None, ge=1)

    export: bool = Field(False, description="Also write CSV/JSON exports to the output directory")
    notify: bool = Field(False, description="Send the Teams summary if notifications are enabled")


class AssessmentResponse(BaseModel):
    """Assessment bundle plus side effects of the request."""

    bundle: AssessmentBundle
    exports: dict[str, list[str]] = Field(default_factory=dict)
    notification: dict | None = None
