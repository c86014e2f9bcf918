"""Source ingestion.

Reads result files named explicitly or discovered in a results directory,
dispatches each to the normalizer for its source kind, and records the
provenance of every source. A source that cannot be used is logged and
skipped; only the runner decides whether the run as a whole can continue.
"""

import csv
import fnmatch
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from recoverability.posture.context import RunContext
from recoverability.posture.errors import SourceReadError
from recoverability.posture.normalizer import (
    normalize_manual_rows,
    normalize_restore_jobs,
    normalize_test_list,
    normalize_verification_records,
)
from recoverability.schemas.posture import IngestionSource, SourceKind
from recoverability.schemas.results import RecoveryValidationResult
from recoverability.schemas.sources import SureBackupTestList

logger = logging.getLogger(__name__)

# PowerShell's Out-File and Export-Csv may prefix a byte order mark
SOURCE_ENCODING = "utf-8-sig"

DEFAULT_PATTERNS: dict[SourceKind, str] = {
    SourceKind.SUREBACKUP: "*ahv*.json",
    SourceKind.VERIFICATION: "*azure*.json",
    SourceKind.RESTORE_JOB: "*aws*.json",
    SourceKind.MANUAL_CSV: "*.csv",
}


class IngestionPlan(BaseModel):
    """Which sources one assessment run reads."""

    surebackup_paths: list[str] = Field(default_factory=list, description="Generic per-VM test lists")
    verification_paths: list[str] = Field(default_factory=list, description="Per-VM verification bundles")
    restore_job_paths: list[str] = Field(default_factory=list, description="Restore jobs with health checks")
    manual_csv_paths: list[str] = Field(default_factory=list, description="Manual CSV results")
    results_dir: str | None = Field(None, description="Directory scanned with the discovery patterns")

    def explicit_sources(self) -> list[tuple[SourceKind, str]]:
        return (
            [(SourceKind.SUREBACKUP, p) for p in self.surebackup_paths]
            + [(SourceKind.VERIFICATION, p) for p in self.verification_paths]
            + [(SourceKind.RESTORE_JOB, p) for p in self.restore_job_paths]
            + [(SourceKind.MANUAL_CSV, p) for p in self.manual_csv_paths]
        )

    @property
    def is_empty(self) -> bool:
        return not self.explicit_sources() and not self.results_dir


# =============================================================================
# Readers
# =============================================================================


def load_json_document(path: str | Path) -> Any:
    """Read and decode a JSON result file.

    Raises:
        SourceReadError: If the file cannot be read or is not valid JSON
    """
    try:
        with open(path, encoding=SOURCE_ENCODING) as f:
            return json.load(f)
    except OSError as e:
        raise SourceReadError(str(path), f"unreadable: {e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SourceReadError(str(path), f"invalid JSON: {e}") from e


def read_csv_rows(path: str | Path) -> list[dict[str, str]]:
    """Read a CSV result file into a list of row dicts.

    Raises:
        SourceReadError: If the file cannot be read or parsed as CSV
    """
    try:
        with open(path, encoding=SOURCE_ENCODING, newline="") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames is None:
                raise SourceReadError(str(path), "no header row")
            return [
                {k.strip(): v for k, v in row.items() if k is not None}
                for row in reader
            ]
    except OSError as e:
        raise SourceReadError(str(path), f"unreadable: {e}") from e
    except (csv.Error, UnicodeDecodeError) as e:
        raise SourceReadError(str(path), f"invalid CSV: {e}") from e


def discover_result_files(
    directory: str | Path,
    patterns: Mapping[SourceKind, str] | None = None,
) -> list[tuple[SourceKind, Path]]:
    """Match files in a directory against per-kind filename patterns.

    Matching is case-insensitive. A file matching several patterns is
    assigned to the first kind in pattern order.

    Args:
        directory: Directory to scan (not recursive)
        patterns: Filename pattern per source kind

    Returns:
        (kind, path) pairs sorted by kind order then filename
    """
    patterns = patterns or DEFAULT_PATTERNS
    files = sorted(p for p in Path(directory).iterdir() if p.is_file())

    discovered = []
    for kind, pattern in patterns.items():
        for path in files:
            if any(path == seen for _, seen in discovered):
                continue
            if fnmatch.fnmatch(path.name.lower(), pattern.lower()):
                discovered.append((kind, path))
    return discovered


# =============================================================================
# Dispatch
# =============================================================================


def _record_count(kind: SourceKind, document: Any) -> int:
    if isinstance(document, list):
        return len(document)
    if kind == SourceKind.SUREBACKUP and isinstance(document, Mapping):
        for key in SureBackupTestList.keys_for("tests"):
            if isinstance(document.get(key), list):
                return len(document[key])
    return 0 if document is None else 1


def ingest_file(
    kind: SourceKind,
    path: str | Path,
    context: RunContext,
    *,
    default_rto_target_minutes: int = 0,
) -> list[RecoveryValidationResult]:
    """Read and normalize one source file.

    Failures are recorded in the run context as a skipped source and
    yield no results.
    """
    location = str(path)
    if not Path(path).is_file():
        context.record_skip(kind, location, "file does not exist")
        return []

    try:
        if kind == SourceKind.MANUAL_CSV:
            document: Any = read_csv_rows(path)
        else:
            document = load_json_document(path)
    except SourceReadError as e:
        context.record_skip(kind, location, e.reason)
        return []

    if kind == SourceKind.SUREBACKUP:
        results = normalize_test_list(
            document,
            default_rto_target_minutes=default_rto_target_minutes,
            context=context,
            source=location,
        )
    elif kind == SourceKind.VERIFICATION:
        results = normalize_verification_records(
            document,
            default_rto_target_minutes=default_rto_target_minutes,
            context=context,
            source=location,
        )
    elif kind == SourceKind.RESTORE_JOB:
        results = normalize_restore_jobs(document, context=context, source=location)
    else:
        results = normalize_manual_rows(
            document,
            default_rto_target_minutes=default_rto_target_minutes,
            context=context,
            source=location,
        )

    if not results:
        context.record_skip(kind, location, "no usable records")
        return []

    context.record_source(
        IngestionSource(
            kind=kind,
            location=location,
            record_count=_record_count(kind, document),
            result_count=len(results),
            platforms=list(dict.fromkeys(r.platform for r in results)),
        )
    )
    return results


def ingest_sources(
    plan: IngestionPlan,
    context: RunContext,
    *,
    patterns: Mapping[SourceKind, str] | None = None,
    default_rto_target_minutes: int = 0,
) -> list[RecoveryValidationResult]:
    """Ingest every source named by a plan.

    Explicit paths are read first, then files discovered in the results
    directory that were not already named explicitly.

    Args:
        plan: Sources to read
        context: Run context receiving provenance and audit entries
        patterns: Discovery pattern per source kind
        default_rto_target_minutes: Target for records that carry none

    Returns:
        All normalized results in source order
    """
    sources = [(kind, Path(path)) for kind, path in plan.explicit_sources()]

    if plan.results_dir:
        directory = Path(plan.results_dir)
        if not directory.is_dir():
            context.record_skip(SourceKind.DIRECTORY, str(directory), "directory does not exist")
        else:
            explicit = {path.resolve() for _, path in sources}
            discovered = [
                (kind, path)
                for kind, path in discover_result_files(directory, patterns)
                if path.resolve() not in explicit
            ]
            if not discovered:
                context.record_skip(SourceKind.DIRECTORY, str(directory), "no matching result files")
            else:
                logger.info(f"Discovered {len(discovered)} result files in {directory}")
            sources.extend(discovered)

    results: list[RecoveryValidationResult] = []
    for kind, path in sources:
        results.extend(
            ingest_file(kind, path, context, default_rto_target_minutes=default_rto_target_minutes)
        )

    logger.info(
        f"Ingested {len(results)} results from {len(context.ingested_sources)} sources "
        f"({len(context.skipped_sources)} skipped)"
    )
    return results
