"""Append-only snapshot history.

Two backends share one interface: a directory holding one JSON file per
run, and a SQL table holding one row per run. Neither ever updates or
deletes an existing snapshot. The prior-run lookup excludes the current
run by its run ID rather than by how recently a snapshot was written.
"""

import json
import logging
import re
from datetime import UTC
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from recoverability.core.database import get_session_factory, init_db, session_scope
from recoverability.models.snapshot import PostureSnapshotRecord
from recoverability.posture.errors import SnapshotStoreError
from recoverability.schemas.posture import PostureSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "posture"
SNAPSHOT_DB_FILENAME = "posture_snapshots.db"
_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"
_FILENAME_PATTERN = re.compile(
    rf"^{SNAPSHOT_PREFIX}_(?P<slug>[a-z0-9-]+)_(?P<stamp>\d{{8}}T\d{{12}}Z)_(?P<run_id>[\w-]+)\.json$"
)


def organization_slug(organization: str) -> str:
    """Filesystem-safe identifier for an organization name."""
    slug = re.sub(r"[^a-z0-9]+", "-", organization.lower()).strip("-")
    return slug or "default"


class SnapshotStore:
    """Interface shared by the snapshot backends."""

    @property
    def location(self) -> str:
        raise NotImplementedError

    def write(self, snapshot: PostureSnapshot) -> str:
        """Persist a new snapshot and return where it was written."""
        raise NotImplementedError

    def latest_prior(self, organization: str, exclude_run_id: str) -> PostureSnapshot | None:
        """Most recent snapshot of an earlier run, or None for a baseline run."""
        raise NotImplementedError

    def latest(self, organization: str) -> PostureSnapshot | None:
        """Most recent snapshot for the organization."""
        raise NotImplementedError

    def history(self, organization: str, limit: int = 20) -> list[PostureSnapshot]:
        """Snapshots for the organization, newest first."""
        raise NotImplementedError


class JsonSnapshotStore(SnapshotStore):
    """One JSON file per run in a snapshot directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    @property
    def location(self) -> str:
        return str(self.directory)

    def filename_for(self, snapshot: PostureSnapshot) -> str:
        stamp = snapshot.created_at.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)
        return f"{SNAPSHOT_PREFIX}_{organization_slug(snapshot.organization)}_{stamp}_{snapshot.run_id}.json"

    def write(self, snapshot: PostureSnapshot) -> str:
        path = self.directory / self.filename_for(snapshot)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Mode "x" refuses to replace an existing snapshot
            with open(path, "x", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(indent=2))
        except OSError as e:
            raise SnapshotStoreError(f"Failed to write snapshot {path}: {e}") from e

        logger.info(f"Wrote posture snapshot {path}")
        return str(path)

    def _candidates(self, organization: str) -> list[tuple[str, str, Path]]:
        """(timestamp, run_id, path) for the organization, newest first."""
        if not self.directory.exists():
            return []
        slug = organization_slug(organization)
        try:
            entries = list(self.directory.iterdir())
        except OSError as e:
            raise SnapshotStoreError(f"Failed to list snapshot directory {self.directory}: {e}") from e

        candidates = []
        for path in entries:
            match = _FILENAME_PATTERN.match(path.name)
            if match and match.group("slug") == slug:
                candidates.append((match.group("stamp"), match.group("run_id"), path))
        candidates.sort(reverse=True)
        return candidates

    def _load(self, path: Path) -> PostureSnapshot | None:
        try:
            return PostureSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning(f"Snapshot {path} is unreadable and will be ignored: {e}")
            return None

    def latest_prior(self, organization: str, exclude_run_id: str) -> PostureSnapshot | None:
        for _, run_id, path in self._candidates(organization):
            if run_id == exclude_run_id:
                continue
            snapshot = self._load(path)
            if snapshot is None:
                logger.warning(f"Treating run for {organization} as baseline: prior snapshot {path} is corrupt")
            return snapshot
        return None

    def latest(self, organization: str) -> PostureSnapshot | None:
        candidates = self._candidates(organization)
        if not candidates:
            return None
        return self._load(candidates[0][2])

    def history(self, organization: str, limit: int = 20) -> list[PostureSnapshot]:
        snapshots = []
        for _, _, path in self._candidates(organization):
            snapshot = self._load(path)
            if snapshot is not None:
                snapshots.append(snapshot)
            if len(snapshots) >= limit:
                break
        return snapshots


class SqlSnapshotStore(SnapshotStore):
    """One row per run in the posture_snapshots table."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._session_factory = None

    @property
    def location(self) -> str:
        return self.database_url

    def _sessions(self):
        if self._session_factory is None:
            try:
                init_db(self.database_url)
            except SQLAlchemyError as e:
                raise SnapshotStoreError(f"Failed to initialize snapshot database: {e}") from e
            self._session_factory = get_session_factory(self.database_url)
        return self._session_factory

    def write(self, snapshot: PostureSnapshot) -> str:
        record = PostureSnapshotRecord(
            run_id=snapshot.run_id,
            organization=snapshot.organization,
            created_at=snapshot.created_at,
            compliance_score=snapshot.score.overall_score,
            grade=snapshot.score.grade,
            pass_rate=snapshot.summary.pass_rate,
            total_vms=snapshot.summary.total_vms,
            finding_count=len(snapshot.findings),
            payload=snapshot.model_dump_json(),
        )
        try:
            with session_scope(self._sessions()) as db:
                db.add(record)
        except SQLAlchemyError as e:
            raise SnapshotStoreError(f"Failed to write snapshot {snapshot.run_id}: {e}") from e

        logger.info(f"Wrote posture snapshot {snapshot.run_id} to {self.database_url}")
        return f"{self.database_url}#{snapshot.run_id}"

    def _select(self, organization: str, exclude_run_id: str | None = None, limit: int = 1) -> list[tuple[str, str]]:
        """(run_id, payload) rows, newest first."""
        query = select(PostureSnapshotRecord.run_id, PostureSnapshotRecord.payload).where(
            PostureSnapshotRecord.organization == organization
        )
        if exclude_run_id is not None:
            query = query.where(PostureSnapshotRecord.run_id != exclude_run_id)
        query = query.order_by(
            PostureSnapshotRecord.created_at.desc(), PostureSnapshotRecord.id.desc()
        ).limit(limit)
        try:
            with session_scope(self._sessions()) as db:
                return [(row.run_id, row.payload) for row in db.execute(query)]
        except SQLAlchemyError as e:
            raise SnapshotStoreError(f"Failed to read snapshots for {organization}: {e}") from e

    def _load(self, run_id: str, payload: str) -> PostureSnapshot | None:
        try:
            return PostureSnapshot.model_validate(json.loads(payload))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Snapshot {run_id} is unreadable and will be ignored: {e}")
            return None

    def latest_prior(self, organization: str, exclude_run_id: str) -> PostureSnapshot | None:
        rows = self._select(organization, exclude_run_id=exclude_run_id)
        if not rows:
            return None
        snapshot = self._load(*rows[0])
        if snapshot is None:
            logger.warning(f"Treating run for {organization} as baseline: prior snapshot {rows[0][0]} is corrupt")
        return snapshot

    def latest(self, organization: str) -> PostureSnapshot | None:
        rows = self._select(organization)
        return self._load(*rows[0]) if rows else None

    def history(self, organization: str, limit: int = 20) -> list[PostureSnapshot]:
        snapshots = [self._load(run_id, payload) for run_id, payload in self._select(organization, limit=limit)]
        return [s for s in snapshots if s is not None]


def get_snapshot_store(
    backend: str = "json",
    snapshot_dir: str | Path | None = None,
    database_url: str | None = None,
) -> SnapshotStore | None:
    """Build the configured snapshot store, or None when history is disabled.

    Args:
        backend: "json" or "sqlite"
        snapshot_dir: Snapshot directory (JSON files, or the default SQLite file)
        database_url: Explicit database URL for the sqlite backend

    Returns:
        A SnapshotStore, or None when no location is configured
    """
    if backend == "sqlite":
        if database_url:
            return SqlSnapshotStore(database_url)
        if snapshot_dir:
            db_path = Path(snapshot_dir) / SNAPSHOT_DB_FILENAME
            return SqlSnapshotStore(f"sqlite:///{db_path}")
        return None
    if backend != "json":
        raise ValueError(f"Unknown snapshot backend: {backend}")
    if snapshot_dir:
        return JsonSnapshotStore(snapshot_dir)
    return None

