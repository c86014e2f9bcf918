"""Source-specific result shapes.

Each recovery validation source produces its own document layout. These
models accept both snake_case keys and the PascalCase keys written by the
PowerShell collectors. Every field carries a default so a record with a bad
field can be re-validated without it (see ``posture.normalizer``).
"""

import math
import re
from datetime import UTC, datetime
from typing import Annotated, Any, ClassVar

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from recoverability.schemas.results import Platform, TestCategory, ensure_utc

_MS_DATE_PATTERN = re.compile(r"^\\?/Date\((-?\d+)(?:[+-]\d{4})?\)\\?/$")

TRUTHY_STRINGS = {"true", "1", "yes", "y"}

RESTORE_SUCCESS_STATUSES = {"success", "succeeded", "completed", "passed", "true"}


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO 8601 or PowerShell ``/Date(ms)/`` timestamps into UTC.

    Raises:
        ValueError: If the value is not a recognizable timestamp
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if not text:
        return None
    match = _MS_DATE_PATTERN.match(text)
    if match:
        try:
            return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=UTC)
        except (OverflowError, OSError) as e:
            raise ValueError(f"timestamp out of range: {text}") from e
    return ensure_utc(datetime.fromisoformat(text))


def parse_duration(value: Any) -> float:
    """Parse a duration given as seconds or as ``mm:ss`` / ``hh:mm:ss`` text.

    Raises:
        ValueError: If the value cannot be read as a non-negative duration
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a duration")
    if isinstance(value, int | float):
        seconds = float(value)
    else:
        text = str(value).strip()
        if ":" in text:
            parts = [float(p) for p in text.split(":")]
            if len(parts) == 2:
                seconds = parts[0] * 60 + parts[1]
            elif len(parts) == 3:
                seconds = parts[0] * 3600 + parts[1] * 60 + parts[2]
            else:
                raise ValueError(f"unrecognized duration format: {text}")
        else:
            seconds = float(text)
    if not math.isfinite(seconds):
        raise ValueError("duration must be finite")
    if seconds < 0:
        raise ValueError("duration cannot be negative")
    return seconds


def _as_text(value: Any) -> Any:
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return value


def _parse_category(value: Any) -> TestCategory | None:
    if value is None or isinstance(value, TestCategory):
        return value
    for category in TestCategory:
        if str(value).strip().lower() == category.value.lower():
            return category
    raise ValueError(f"unknown test category: {value}")


def _parse_platform(value: Any) -> Platform:
    platform = Platform.parse(value)
    if platform is None:
        raise ValueError(f"unknown platform: {value}")
    return platform


Text = Annotated[str, BeforeValidator(_as_text)]
Duration = Annotated[float, BeforeValidator(parse_duration)]
Timestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
PlatformTag = Annotated[Platform, BeforeValidator(_parse_platform)]
CategoryTag = Annotated[TestCategory | None, BeforeValidator(_parse_category)]


def _keys(*names: str) -> AliasChoices:
    return AliasChoices(*names)


VM_NAME_KEYS = _keys("vm_name", "VMName", "vmName", "VmName")
JOB_NAME_KEYS = _keys("backup_job_name", "BackupJobName", "JobName")
RESTORE_POINT_KEYS = _keys("restore_point_time", "RestorePointTime", "RestorePoint")
RTO_TARGET_KEYS = _keys("rto_target_minutes", "RTOTargetMinutes", "RtoTargetMinutes")
TIMESTAMP_KEYS = _keys("timestamp", "Timestamp", "StartTime")
CATEGORY_KEYS = _keys("test_category", "TestCategory", "Category")


class SourceRecord(BaseModel):
    """Base class for lenient source records."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, allow_inf_nan=False)

    # Fields whose absence is recorded in the run context
    audited_fields: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        """Treat null and blank values as absent so defaults apply."""
        if isinstance(data, dict):
            return {
                k: v for k, v in data.items()
                if v is not None and not (isinstance(v, str) and not v.strip())
            }
        return data

    @classmethod
    def keys_for(cls, field_name: str) -> list[str]:
        """All input keys accepted for a field."""
        alias = cls.model_fields[field_name].validation_alias
        keys = [field_name]
        if isinstance(alias, AliasChoices):
            keys.extend(str(choice) for choice in alias.choices)
        elif isinstance(alias, str):
            keys.append(alias)
        return keys

    @classmethod
    def field_for_key(cls, key: str) -> str | None:
        """Resolve an input key or error location to its field name."""
        for name in cls.model_fields:
            if key in cls.keys_for(name):
                return name
        return None


class SureBackupTestEntry(SourceRecord):
    """One test from a generic per-VM test list."""

    audited_fields = ("vm_name", "test_name", "passed")

    vm_name: Text = Field("Unknown", validation_alias=VM_NAME_KEYS)
    test_name: Text = Field("Unnamed Test", validation_alias=_keys("test_name", "TestName", "testName", "Test"))
    passed: bool = Field(False, validation_alias=_keys("passed", "Passed", "Success"))
    details: Text = Field("", validation_alias=_keys("details", "Details", "Message"))
    duration_seconds: Duration = Field(
        0.0, validation_alias=_keys("duration_seconds", "DurationSeconds", "Duration", "duration")
    )
    timestamp: Timestamp = Field(None, validation_alias=TIMESTAMP_KEYS)
    test_category: CategoryTag = Field(None, validation_alias=CATEGORY_KEYS)


class SureBackupTestList(SourceRecord):
    """Generic per-VM test list produced by SureBackup-style sources."""

    platform: PlatformTag = Field(Platform.NUTANIX_AHV, validation_alias=_keys("platform", "Platform"))
    backup_job_name: Text = Field("", validation_alias=JOB_NAME_KEYS)
    restore_point_time: Timestamp = Field(None, validation_alias=RESTORE_POINT_KEYS)
    rto_target_minutes: int = Field(0, ge=0, validation_alias=RTO_TARGET_KEYS)
    tests: list[Any] = Field(default_factory=list, validation_alias=_keys("tests", "Tests", "Results", "results"))


class VerificationRecord(SourceRecord):
    """Structured per-VM restore-and-verify outcome."""

    audited_fields = ("vm_name", "restore_status", "duration_seconds")

    platform: PlatformTag = Field(Platform.AZURE, validation_alias=_keys("platform", "Platform"))
    vm_name: Text = Field("Unknown", validation_alias=VM_NAME_KEYS)
    backup_job_name: Text = Field("", validation_alias=JOB_NAME_KEYS)
    restore_point_time: Timestamp = Field(None, validation_alias=RESTORE_POINT_KEYS)
    restore_status: Text = Field("Unknown", validation_alias=_keys("restore_status", "RestoreStatus", "Status"))
    boot_verified: bool = Field(False, validation_alias=_keys("boot_verified", "BootVerified", "BootSuccess"))
    heartbeat_verified: bool = Field(
        False, validation_alias=_keys("heartbeat_verified", "HeartbeatVerified", "Heartbeat")
    )
    port_check_passed: bool = Field(
        False, validation_alias=_keys("port_check_passed", "PortCheckPassed", "PortCheck")
    )
    # None means no script verification was attempted
    script_verified: bool | None = Field(
        None, validation_alias=_keys("script_verified", "ScriptVerified", "ScriptSuccess")
    )
    duration_seconds: Duration = Field(
        0.0, validation_alias=_keys("duration", "Duration", "RestoreDuration", "duration_seconds")
    )
    details: Text = Field("", validation_alias=_keys("details", "Details", "ErrorMessage", "Message"))
    timestamp: Timestamp = Field(None, validation_alias=TIMESTAMP_KEYS)
    rto_target_minutes: int = Field(0, ge=0, validation_alias=RTO_TARGET_KEYS)

    @property
    def restore_succeeded(self) -> bool:
        """Check if the restore itself reported success."""
        return self.restore_status.strip().lower() in RESTORE_SUCCESS_STATUSES


class HealthCheckEntry(SourceRecord):
    """One post-restore health check embedded in a restore job bundle."""

    audited_fields = ("test_name", "passed")

    test_name: Text = Field("Health Check", validation_alias=_keys("test_name", "TestName", "CheckName", "Name"))
    passed: bool = Field(False, validation_alias=_keys("passed", "Passed", "Success"))
    details: Text = Field("", validation_alias=_keys("details", "Details", "Message"))
    duration_seconds: Duration = Field(0.0, validation_alias=_keys("duration_seconds", "DurationSeconds", "Duration"))
    timestamp: Timestamp = Field(None, validation_alias=_keys("timestamp", "Timestamp"))
    test_category: CategoryTag = Field(None, validation_alias=CATEGORY_KEYS)


class RestoreJobBundle(SourceRecord):
    """Lift-and-shift restore job result with embedded health checks."""

    audited_fields = ("vm_name", "success")

    platform: PlatformTag = Field(Platform.AWS, validation_alias=_keys("platform", "Platform"))
    vm_name: Text = Field("Unknown", validation_alias=VM_NAME_KEYS)
    backup_job_name: Text = Field("", validation_alias=JOB_NAME_KEYS)
    restore_point_time: Timestamp = Field(None, validation_alias=RESTORE_POINT_KEYS)
    success: bool = Field(False, validation_alias=_keys("success", "Success", "RestoreSuccess", "Passed"))
    details: Text = Field("", validation_alias=_keys("details", "Details", "Message", "ErrorMessage"))
    duration_seconds: Duration = Field(
        0.0, validation_alias=_keys("duration_seconds", "DurationSeconds", "RestoreDurationSeconds", "Duration")
    )
    timestamp: Timestamp = Field(None, validation_alias=TIMESTAMP_KEYS)
    instance_id: Text = Field("", validation_alias=_keys("instance_id", "InstanceId"))
    rto_target_minutes: int = Field(0, ge=0, validation_alias=RTO_TARGET_KEYS)
    rto_actual_minutes: float | None = Field(
        None, ge=0, validation_alias=_keys("rto_actual_minutes", "RTOActualMinutes", "RtoActualMinutes")
    )
    rto_met: bool | None = Field(None, validation_alias=_keys("rto_met", "RTOMet", "RtoMet"))
    health_checks: list[Any] = Field(
        default_factory=list, validation_alias=_keys("health_checks", "HealthChecks", "HealthCheckResults")
    )


class ManualResultRow(SourceRecord):
    """One row of a manually maintained CSV of recovery test results."""

    audited_fields = ("platform", "vm_name", "test_name", "passed")

    platform: PlatformTag = Field(Platform.VMWARE, validation_alias=_keys("platform", "Platform"))
    vm_name: Text = Field("Unknown", validation_alias=_keys("vm_name", "VMName"))
    backup_job_name: Text = Field("", validation_alias=_keys("backup_job_name", "BackupJobName"))
    test_name: Text = Field("Manual Test", validation_alias=_keys("test_name", "TestName"))
    passed: bool = Field(False, validation_alias=_keys("passed", "Passed"))
    details: Text = Field("", validation_alias=_keys("details", "Details"))
    duration_seconds: Duration = Field(0.0, validation_alias=_keys("duration_seconds", "DurationSeconds"))
    rto_target_minutes: int = Field(0, ge=0, validation_alias=_keys("rto_target_minutes", "RTOTargetMinutes"))
    rto_actual_minutes: float = Field(0.0, ge=0, validation_alias=_keys("rto_actual_minutes", "RTOActualMinutes"))
    timestamp: Timestamp = Field(None, validation_alias=_keys("timestamp", "Timestamp"))
    restore_point_time: Timestamp = Field(None, validation_alias=_keys("restore_point_time", "RestorePointTime"))

    @field_validator("passed", mode="before")
    @classmethod
    def parse_truthy(cls, v: Any) -> bool:
        """Only True/1/Yes variants count as a pass."""
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in TRUTHY_STRINGS

    @field_validator("rto_target_minutes", mode="before")
    @classmethod
    def parse_whole_minutes(cls, v: Any) -> Any:
        """CSV exports write integers as ``30`` or ``30.0``."""
        if isinstance(v, str):
            minutes = float(v.strip())
            if not math.isfinite(minutes):
                raise ValueError("RTO target must be finite")
            return int(minutes)
        return v
