"""CSV and JSON exports of an assessment bundle.

File names carry the organization, run time and run ID, so repeated runs
never overwrite each other's exports.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any

from recoverability.posture.store import organization_slug
from recoverability.schemas.posture import AssessmentBundle

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "Platform",
    "VMName",
    "BackupJobName",
    "RestorePointTime",
    "TestCategory",
    "TestName",
    "Passed",
    "Details",
    "DurationSeconds",
    "Timestamp",
    "RTOTargetMinutes",
    "RTOActualMinutes",
    "RTOMet",
]
FINDING_COLUMNS = ["Severity", "Category", "Title", "Detail", "Recommendation", "Framework"]
DELTA_COLUMNS = ["Metric", "Prior", "Current", "Change"]


def _write_csv(path: Path, rows: list[dict[str, Any]], fieldnames: list[str]) -> Path:
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return path


def _write_json(path: Path, data: Any) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    return path


def export_basename(bundle: AssessmentBundle) -> str:
    stamp = bundle.generated_at.strftime("%Y%m%d_%H%M%S")
    return f"{organization_slug(bundle.organization)}_{stamp}_{bundle.run_id}"


def export_results(bundle: AssessmentBundle, output_dir: str | Path) -> list[Path]:
    """Write the normalized results as CSV and JSON."""
    base = Path(output_dir) / f"RecoveryResults_{export_basename(bundle)}"
    results = bundle.summary.results
    return [
        _write_csv(base.with_suffix(".csv"), [r.to_export_row() for r in results], RESULT_COLUMNS),
        _write_json(base.with_suffix(".json"), [r.to_export_row(blank=None) for r in results]),
    ]


def export_findings(bundle: AssessmentBundle, output_dir: str | Path) -> list[Path]:
    """Write the findings as CSV and JSON."""
    base = Path(output_dir) / f"PostureFindings_{export_basename(bundle)}"
    rows = [f.to_export_row() for f in bundle.findings]
    return [
        _write_csv(base.with_suffix(".csv"), rows, FINDING_COLUMNS),
        _write_json(base.with_suffix(".json"), rows),
    ]


def export_delta(bundle: AssessmentBundle, output_dir: str | Path) -> Path | None:
    """Write the trend delta as CSV; nothing is written for a baseline run."""
    if bundle.delta is None:
        return None
    rows = [
        {"Metric": m.metric, "Prior": m.prior, "Current": m.current, "Change": m.change}
        for m in bundle.delta.metrics
    ]
    path = Path(output_dir) / f"PostureDelta_{export_basename(bundle)}.csv"
    return _write_csv(path, rows, DELTA_COLUMNS)


def export_bundle(bundle: AssessmentBundle, output_dir: str | Path) -> Path:
    """Write the complete bundle as JSON."""
    path = Path(output_dir) / f"PostureBundle_{export_basename(bundle)}.json"
    with open(path, "w", encoding="utf-8") as f:
        f.write(bundle.model_dump_json(indent=2))
    return path


def export_all(bundle: AssessmentBundle, output_dir: str | Path) -> dict[str, list[str]]:
    """Write every export for a bundle.

    Args:
        bundle: Assessment bundle to export
        output_dir: Directory receiving the files (created if missing)

    Returns:
        Written file paths keyed by export name
    """
    output = Path(output_dir)
    output.mkdir(parents=True, exist_ok=True)

    written: dict[str, list[str]] = {
        "results": [str(p) for p in export_results(bundle, output)],
        "findings": [str(p) for p in export_findings(bundle, output)],
        "bundle": [str(export_bundle(bundle, output))],
    }
    delta_path = export_delta(bundle, output)
    if delta_path is not None:
        written["delta"] = [str(delta_path)]

    logger.info(f"Exported assessment {bundle.run_id} to {output}")
    return written
