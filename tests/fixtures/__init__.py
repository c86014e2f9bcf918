"""Test fixtures for recovery validation sources."""

from .posture_fixtures import (
    FIXED_NOW,
    MANUAL_CSV_ROWS,
    RESTORE_JOB_BUNDLES,
    SUREBACKUP_DOCUMENT,
    VERIFICATION_RECORDS,
    make_result,
    write_csv,
    write_json,
)

__all__ = [
    "FIXED_NOW",
    "SUREBACKUP_DOCUMENT",
    "VERIFICATION_RECORDS",
    "RESTORE_JOB_BUNDLES",
    "MANUAL_CSV_ROWS",
    "make_result",
    "write_json",
    "write_csv",
]
