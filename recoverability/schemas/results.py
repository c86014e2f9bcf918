"""Canonical recovery validation result schema."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class Platform(str, Enum):
    """Platforms a recovery test can run on."""

    NUTANIX_AHV = "NutanixAHV"
    AZURE = "Azure"
    AWS = "AWS"
    VMWARE = "VMware"

    @classmethod
    def parse(cls, value: Any) -> "Platform | None":
        """Resolve a platform tag case-insensitively, including common aliases.

        Returns None when the value does not name a known platform.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return None
        key = str(value).strip().lower().replace(" ", "").replace("-", "").replace("_", "")
        return _PLATFORM_ALIASES.get(key)


_PLATFORM_ALIASES: dict[str, Platform] = {
    "nutanixahv": Platform.NUTANIX_AHV,
    "nutanix": Platform.NUTANIX_AHV,
    "ahv": Platform.NUTANIX_AHV,
    "azure": Platform.AZURE,
    "aws": Platform.AWS,
    "amazon": Platform.AWS,
    "ec2": Platform.AWS,
    "vmware": Platform.VMWARE,
    "vsphere": Platform.VMWARE,
}


class TestCategory(str, Enum):
    """Kind of recovery test."""

    __test__ = False

    BOOT = "Boot"
    NETWORK = "Network"
    APPLICATION = "Application"
    CUSTOM = "Custom"


# Checked in order; first match wins
CATEGORY_KEYWORDS: list[tuple[TestCategory, tuple[str, ...]]] = [
    (TestCategory.BOOT, ("boot", "heartbeat", "power", "start")),
    (
        TestCategory.NETWORK,
        ("ping", "icmp", "network", "tcp", "port", "dns", "connectivity"),
    ),
    (
        TestCategory.APPLICATION,
        ("http", "https", "url", "endpoint", "app", "service", "sql", "web"),
    ),
]


def infer_test_category(test_name: str | None) -> TestCategory:
    """Infer a test category from keywords in the test name."""
    name = (test_name or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return category
    return TestCategory.CUSTOM


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class RecoveryValidationResult(BaseModel):
    """One test outcome for one VM on one platform.

    ``rto_met`` is tri-state: None means no RTO target applied to the record.
    It is forced to None whenever ``rto_target_minutes`` is not positive.
    """

    platform: Platform = Field(..., description="Platform the test ran on")
    vm_name: str = Field(..., description="Tested VM, not unique across platforms")
    backup_job_name: str = Field("", description="Backup job, empty if unknown")
    restore_point_time: datetime | None = Field(
        None, description="Restore point used, None when unavailable"
    )
    test_category: TestCategory = Field(
        None, description="Inferred from test_name when not supplied"
    )
    test_name: str = Field(..., description="Free-text test identifier")
    passed: bool = Field(..., description="Whether the test passed")
    details: str = Field("", description="Human-readable outcome")
    duration_seconds: float = Field(0.0, ge=0)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the test executed",
    )
    rto_target_minutes: int = Field(0, ge=0, description="0 means no target set")
    rto_actual_minutes: float | None = None
    rto_met: bool | None = None

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def fill_category(cls, data: Any) -> Any:
        """Infer the category from the test name when none was supplied."""
        if isinstance(data, dict) and data.get("test_category") is None:
            data = dict(data)
            data["test_category"] = infer_test_category(data.get("test_name"))
        return data

    @field_validator("duration_seconds")
    @classmethod
    def round_duration(cls, v: float) -> float:
        return round(v, 2)

    @field_validator("rto_actual_minutes")
    @classmethod
    def round_rto_actual(cls, v: float | None) -> float | None:
        return round(v, 2) if v is not None else None

    @field_validator("timestamp", "restore_point_time")
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @model_validator(mode="after")
    def clear_rto_without_target(self):
        """A record with no RTO target never carries an RTO verdict."""
        if self.rto_target_minutes <= 0 and self.rto_met is not None:
            self.rto_met = None
        return self

    @property
    def has_rto_verdict(self) -> bool:
        """Check if an RTO target was evaluated for this record."""
        return self.rto_met is not None

    def to_export_row(self, blank: Any = "") -> dict[str, Any]:
        """Flatten the record into serialization-safe values.

        Unset values become ``blank`` (an empty string for CSV, None for
        JSON) and are never coerced to False.
        """
        return {
            "Platform": self.platform.value,
            "VMName": self.vm_name,
            "BackupJobName": self.backup_job_name,
            "RestorePointTime": self.restore_point_time.isoformat()
            if self.restore_point_time
            else blank,
            "TestCategory": self.test_category.value,
            "TestName": self.test_name,
            "Passed": self.passed,
            "Details": self.details,
            "DurationSeconds": self.duration_seconds,
            "Timestamp": self.timestamp.isoformat(),
            "RTOTargetMinutes": self.rto_target_minutes,
            "RTOActualMinutes": blank
            if self.rto_actual_minutes is None
            else self.rto_actual_minutes,
            "RTOMet": blank if self.rto_met is None else self.rto_met,
        }
