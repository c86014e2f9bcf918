"""Exceptions raised by the posture assessment engine."""

from typing import Any


class PostureAssessmentError(Exception):
    """Base exception for posture assessment errors."""

    def __init__(
        self, message: str, error_code: str = "assessment_error", details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class NoResultsIngestedError(PostureAssessmentError):
    """Raised when every configured source combined yields zero results."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__(
            "No recovery validation results were ingested from any source",
            error_code="no_results",
            details=details,
        )


class SourceReadError(PostureAssessmentError):
    """Raised when a source file cannot be read or parsed."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Cannot read {location}: {reason}", error_code="source_unreadable")


class SnapshotStoreError(PostureAssessmentError):
    """Raised when snapshot history cannot be read or written."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, error_code="snapshot_store", details=details)
