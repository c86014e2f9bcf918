"""Result normalizer.

Converts the source-specific shapes in ``schemas.sources`` into canonical
``RecoveryValidationResult`` records. Normalization never fails on a single
bad record: an invalid field is dropped and resolves to its default, and
a record that is not an object at all is skipped. Both cases are recorded
in the run context.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError

from recoverability.posture.context import RunContext
from recoverability.schemas.results import Platform, RecoveryValidationResult, TestCategory
from recoverability.schemas.sources import (
    HealthCheckEntry,
    ManualResultRow,
    RestoreJobBundle,
    SourceRecord,
    SureBackupTestEntry,
    SureBackupTestList,
    VerificationRecord,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=SourceRecord)


def parse_source_record(
    model: type[R],
    raw: Any,
    context: RunContext,
    source: str,
    index: int,
) -> R | None:
    """Validate one raw record, defaulting any field that fails validation.

    Args:
        model: Source record model to validate against
        raw: The raw record (normally a dict decoded from JSON or CSV)
        context: Run context receiving defaulted-field entries
        source: Source identifier used in log and audit entries
        index: Position of the record within its source

    Returns:
        The validated record, or None if the record is not an object
    """
    if isinstance(raw, model):
        return raw
    if not isinstance(raw, Mapping):
        context.record_skipped_record(
            source, index, f"expected an object, got {type(raw).__name__}"
        )
        return None

    data = dict(raw)
    invalid: dict[str, str] = {}

    # Each pass removes at least one offending field
    for _ in range(len(model.model_fields) + 1):
        try:
            record = model.model_validate(data)
            break
        except ValidationError as e:
            progressed = False
            for error in e.errors():
                if not error["loc"]:
                    continue
                field_name = model.field_for_key(str(error["loc"][0]))
                if field_name is None or field_name in invalid:
                    continue
                invalid[field_name] = error["msg"]
                for key in model.keys_for(field_name):
                    data.pop(key, None)
                progressed = True
            if not progressed:
                context.record_skipped_record(source, index, f"unrecoverable record: {e}")
                return None
    else:
        context.record_skipped_record(source, index, "too many invalid fields")
        return None

    for field_name, message in invalid.items():
        context.record_default(
            source, index, field_name,
            getattr(record, field_name),
            f"invalid value: {message}",
        )
    for field_name in model.audited_fields:
        if field_name not in record.model_fields_set and field_name not in invalid:
            context.record_default(
                source, index, field_name, getattr(record, field_name), "missing"
            )

    return record


def _as_records(document: Any) -> list[Any]:
    """A source document holds either a single object or an array of them."""
    if document is None:
        return []
    if isinstance(document, Mapping) or isinstance(document, SourceRecord):
        return [document]
    if isinstance(document, Iterable) and not isinstance(document, str | bytes):
        return list(document)
    return [document]


def _rto_verdict(
    actual_minutes: float | None, target_minutes: int
) -> tuple[float | None, bool | None]:
    """Compare actual recovery minutes with a target; no target means no verdict."""
    if target_minutes <= 0 or actual_minutes is None:
        return None, None
    actual = round(actual_minutes, 2)
    return actual, actual <= target_minutes


# =============================================================================
# Generic per-VM test list
# =============================================================================


def normalize_test_list(
    document: Any,
    *,
    platform: Platform | None = None,
    backup_job_name: str | None = None,
    restore_point_time: datetime | None = None,
    rto_target_minutes: int | None = None,
    default_rto_target_minutes: int = 0,
    context: RunContext | None = None,
    source: str = "surebackup",
) -> list[RecoveryValidationResult]:
    """Normalize a generic per-VM test list.

    The document is either an object with a ``tests`` array plus uniform
    job context, or a bare array of test entries. When an RTO target
    applies, a VM's actual RTO is the sum of all of its test durations,
    i.e. the total time taken to prove the VM recoverable.

    Args:
        document: Decoded source document
        platform: Overrides the platform named by the document
        backup_job_name: Applied to every record, overriding the document
        restore_point_time: Applied to every record, overriding the document
        rto_target_minutes: Overrides the document's RTO target
        default_rto_target_minutes: Used when neither override nor document sets a target
        context: Run context for audit entries
        source: Source identifier

    Returns:
        One result per test entry
    """
    context = context or RunContext()

    if isinstance(document, SureBackupTestList):
        header = document
        raw_entries = header.tests
    elif isinstance(document, Mapping) and not _looks_like_test_entry(document):
        header = parse_source_record(SureBackupTestList, document, context, source, 0)
        header = header or SureBackupTestList()
        raw_entries = header.tests
    else:
        header = SureBackupTestList()
        raw_entries = _as_records(document)

    entries = [
        entry
        for index, raw in enumerate(raw_entries)
        if (entry := parse_source_record(SureBackupTestEntry, raw, context, source, index))
    ]

    target = rto_target_minutes or header.rto_target_minutes or default_rto_target_minutes
    job_name = backup_job_name if backup_job_name is not None else header.backup_job_name
    restore_point = restore_point_time or header.restore_point_time
    result_platform = platform or header.platform

    # Total validation time per VM
    vm_seconds: dict[str, float] = {}
    for entry in entries:
        vm_seconds[entry.vm_name] = vm_seconds.get(entry.vm_name, 0.0) + entry.duration_seconds

    results = []
    for entry in entries:
        rto_actual, rto_met = _rto_verdict(vm_seconds[entry.vm_name] / 60, target)
        results.append(
            RecoveryValidationResult(
                platform=result_platform,
                vm_name=entry.vm_name,
                backup_job_name=job_name,
                restore_point_time=restore_point,
                test_category=entry.test_category,
                test_name=entry.test_name,
                passed=entry.passed,
                details=entry.details,
                duration_seconds=entry.duration_seconds,
                timestamp=entry.timestamp or context.ingested_at,
                rto_target_minutes=target,
                rto_actual_minutes=rto_actual,
                rto_met=rto_met,
            )
        )

    logger.debug(f"{source}: normalized {len(results)} test results")
    return results


def _looks_like_test_entry(document: Mapping) -> bool:
    """A single test entry may be given without a surrounding list."""
    header_keys = set(SureBackupTestList.keys_for("tests"))
    if header_keys & set(document.keys()):
        return False
    entry_keys = set(SureBackupTestEntry.keys_for("test_name")) | set(
        SureBackupTestEntry.keys_for("vm_name")
    )
    return bool(entry_keys & set(document.keys()))


# =============================================================================
# Structured per-VM verification bundle
# =============================================================================


def normalize_verification_records(
    document: Any,
    *,
    default_rto_target_minutes: int = 0,
    context: RunContext | None = None,
    source: str = "verification",
) -> list[RecoveryValidationResult]:
    """Expand per-VM verification bundles into individual results.

    Each bundle yields a Restore record carrying the total restore
    duration, Boot Verification, Heartbeat and TCP Port Check records
    with no individual duration, and a Custom Script record when script
    verification was attempted. The RTO verdict derived from the total
    restore duration is applied to every record of the VM.
    """
    context = context or RunContext()
    results: list[RecoveryValidationResult] = []

    for index, raw in enumerate(_as_records(document)):
        record = parse_source_record(VerificationRecord, raw, context, source, index)
        if record is None:
            continue

        target = record.rto_target_minutes or default_rto_target_minutes
        rto_actual, rto_met = _rto_verdict(record.duration_seconds / 60, target)
        restore_details = f"Restore {record.restore_status}"
        if record.details:
            restore_details += f": {record.details}"

        checks: list[tuple[str, TestCategory | None, bool, str, float]] = [
            ("Restore", TestCategory.BOOT, record.restore_succeeded, restore_details, record.duration_seconds),
            (
                "Boot Verification",
                TestCategory.BOOT,
                record.boot_verified,
                "VM booted successfully" if record.boot_verified else "VM failed to boot",
                0.0,
            ),
            (
                "Heartbeat",
                TestCategory.BOOT,
                record.heartbeat_verified,
                "Guest heartbeat detected" if record.heartbeat_verified else "No guest heartbeat detected",
                0.0,
            ),
            (
                "TCP Port Check",
                TestCategory.NETWORK,
                record.port_check_passed,
                "Required ports reachable" if record.port_check_passed else "Required ports unreachable",
                0.0,
            ),
        ]
        if record.script_verified is not None:
            checks.append(
                (
                    "Custom Script",
                    None,
                    record.script_verified,
                    "Verification script succeeded" if record.script_verified else "Verification script failed",
                    0.0,
                )
            )

        for test_name, category, passed, details, duration in checks:
            results.append(
                RecoveryValidationResult(
                    platform=record.platform,
                    vm_name=record.vm_name,
                    backup_job_name=record.backup_job_name,
                    restore_point_time=record.restore_point_time,
                    test_category=category,
                    test_name=test_name,
                    passed=passed,
                    details=details,
                    duration_seconds=duration,
                    timestamp=record.timestamp or context.ingested_at,
                    rto_target_minutes=target,
                    rto_actual_minutes=rto_actual,
                    rto_met=rto_met,
                )
            )

    logger.debug(f"{source}: expanded verification bundles into {len(results)} results")
    return results


# =============================================================================
# Restore job bundle with embedded health checks
# =============================================================================


def normalize_restore_jobs(
    document: Any,
    *,
    context: RunContext | None = None,
    source: str = "restore_job",
) -> list[RecoveryValidationResult]:
    """Normalize restore job bundles and their embedded health checks.

    The bundle's own duration and RTO fields are used verbatim for the
    Restore record; each health check inherits the bundle's VM, job and
    RTO context.
    """
    context = context or RunContext()
    results: list[RecoveryValidationResult] = []

    for index, raw in enumerate(_as_records(document)):
        bundle = parse_source_record(RestoreJobBundle, raw, context, source, index)
        if bundle is None:
            continue

        bundle_time = bundle.timestamp or context.ingested_at
        restore_details = bundle.details or ("Restore succeeded" if bundle.success else "Restore failed")
        if bundle.instance_id:
            restore_details += f" (instance {bundle.instance_id})"

        shared = {
            "platform": bundle.platform,
            "vm_name": bundle.vm_name,
            "backup_job_name": bundle.backup_job_name,
            "restore_point_time": bundle.restore_point_time,
            "rto_target_minutes": bundle.rto_target_minutes,
            "rto_actual_minutes": bundle.rto_actual_minutes,
            "rto_met": bundle.rto_met,
        }

        results.append(
            RecoveryValidationResult(
                **shared,
                test_category=TestCategory.BOOT,
                test_name="Restore",
                passed=bundle.success,
                details=restore_details,
                duration_seconds=bundle.duration_seconds,
                timestamp=bundle_time,
            )
        )

        check_source = f"{source}[{index}].health_checks"
        for check_index, raw_check in enumerate(bundle.health_checks):
            check = parse_source_record(HealthCheckEntry, raw_check, context, check_source, check_index)
            if check is None:
                continue
            results.append(
                RecoveryValidationResult(
                    **shared,
                    test_category=check.test_category,
                    test_name=check.test_name,
                    passed=check.passed,
                    details=check.details,
                    duration_seconds=check.duration_seconds,
                    timestamp=check.timestamp or bundle_time,
                )
            )

    logger.debug(f"{source}: normalized {len(results)} restore job results")
    return results


# =============================================================================
# Manual CSV rows
# =============================================================================


def normalize_manual_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    default_rto_target_minutes: int = 0,
    context: RunContext | None = None,
    source: str = "manual_csv",
) -> list[RecoveryValidationResult]:
    """Map manual CSV rows one-to-one onto results."""
    context = context or RunContext()
    results: list[RecoveryValidationResult] = []

    for index, raw in enumerate(rows):
        row = parse_source_record(ManualResultRow, raw, context, source, index)
        if row is None:
            continue

        target = row.rto_target_minutes or default_rto_target_minutes
        actual = row.rto_actual_minutes if "rto_actual_minutes" in row.model_fields_set else None
        rto_actual, rto_met = _rto_verdict(actual, target)

        results.append(
            RecoveryValidationResult(
                platform=row.platform,
                vm_name=row.vm_name,
                backup_job_name=row.backup_job_name,
                restore_point_time=row.restore_point_time,
                test_name=row.test_name,
                passed=row.passed,
                details=row.details,
                duration_seconds=row.duration_seconds,
                timestamp=row.timestamp or context.ingested_at,
                rto_target_minutes=target,
                rto_actual_minutes=rto_actual if rto_actual is not None else actual,
                rto_met=rto_met,
            )
        )

    logger.debug(f"{source}: normalized {len(results)} manual results")
    return results
