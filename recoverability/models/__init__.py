"""Database models."""

from recoverability.models.snapshot import PostureSnapshotRecord

__all__ = ["PostureSnapshotRecord"]
