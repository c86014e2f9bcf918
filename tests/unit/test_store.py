"""Tests for snapshot history backends."""

import uuid
from datetime import timedelta

import pytest

from recoverability.posture.errors import SnapshotStoreError
from recoverability.posture.scoring import compute_compliance_score
from recoverability.posture.store import (
    JsonSnapshotStore,
    SqlSnapshotStore,
    get_snapshot_store,
    organization_slug,
)
from recoverability.posture.summary import build_summary
from recoverability.schemas.posture import PostureSnapshot
from tests.fixtures import FIXED_NOW, make_result


def make_snapshot(organization="Contoso", minutes_ago=0, run_id=None):
    summary = build_summary([make_result()], FIXED_NOW)
    return PostureSnapshot(
        run_id=run_id or str(uuid.uuid4()),
        organization=organization,
        created_at=FIXED_NOW - timedelta(minutes=minutes_ago),
        summary=summary.metrics(),
        score=compute_compliance_score(summary, as_of=FIXED_NOW),
    )


@pytest.fixture(params=["json", "sqlite"])
def store(request, tmp_path):
    """Each backend in turn, rooted in the test's temp directory."""
    if request.param == "json":
        return JsonSnapshotStore(tmp_path / "snapshots")
    return SqlSnapshotStore(f"sqlite:///{tmp_path}/snapshots/history.db")


class TestOrganizationSlug:
    """Tests for organization_slug."""

    def test_slug(self):
        assert organization_slug("Contoso Ltd.") == "contoso-ltd"
        assert organization_slug("!!!") == "default"


class TestSnapshotStore:
    """Behavior shared by both backends."""

    def test_empty_store_has_no_prior(self, store):
        """Test a first run finds no prior snapshot."""
        assert store.latest_prior("Contoso", exclude_run_id="x") is None
        assert store.latest("Contoso") is None
        assert store.history("Contoso") == []

    def test_latest_prior_excludes_current_run(self, store):
        """Test the current run's own snapshot is never its prior."""
        older = make_snapshot(minutes_ago=60)
        current = make_snapshot(minutes_ago=0)
        store.write(older)
        store.write(current)

        prior = store.latest_prior("Contoso", exclude_run_id=current.run_id)

        assert prior.run_id == older.run_id

    def test_prior_from_seconds_earlier_is_found(self, store):
        """Test a snapshot written moments before still counts as prior."""
        first = make_snapshot()
        second = make_snapshot()
        store.write(first)

        assert store.latest_prior("Contoso", exclude_run_id=second.run_id).run_id == first.run_id

    def test_history_newest_first(self, store):
        """Test history is ordered by creation time, newest first."""
        snapshots = [make_snapshot(minutes_ago=m) for m in (30, 10, 20)]
        for snapshot in snapshots:
            store.write(snapshot)

        history = store.history("Contoso")

        assert [s.run_id for s in history] == [
            snapshots[1].run_id,
            snapshots[2].run_id,
            snapshots[0].run_id,
        ]
        assert store.latest("Contoso").run_id == snapshots[1].run_id
        assert len(store.history("Contoso", limit=2)) == 2

    def test_organizations_are_isolated(self, store):
        """Test one organization never sees another's snapshots."""
        store.write(make_snapshot(organization="Fabrikam"))

        assert store.latest("Contoso") is None
        assert store.latest("Fabrikam") is not None

    def test_snapshot_round_trip_preserves_score(self, store):
        """Test a stored snapshot reads back with its score and summary."""
        snapshot = make_snapshot()
        store.write(snapshot)

        loaded = store.latest("Contoso")

        assert loaded.score == snapshot.score
        assert loaded.summary.pass_rate == snapshot.summary.pass_rate

    def test_existing_snapshot_never_replaced(self, store):
        """Test writing the same run twice fails instead of overwriting."""
        snapshot = make_snapshot()
        store.write(snapshot)

        with pytest.raises(SnapshotStoreError):
            store.write(snapshot)
        assert len(store.history("Contoso")) == 1


class TestJsonSnapshotStore:
    """Tests specific to the JSON directory backend."""

    def test_filename_carries_org_time_and_run(self, tmp_path):
        """Test the file name identifies organization, time and run."""
        store = JsonSnapshotStore(tmp_path)
        snapshot = make_snapshot(run_id="run-1")

        path = store.write(snapshot)

        assert path.endswith("posture_contoso_20260601T120000000000Z_run-1.json")

    @pytest.mark.parametrize(
        "content",
        [b"{not json", b"\xff\xfe\x00garbage"],
        ids=["invalid-json", "not-utf8"],
    )
    def test_corrupt_prior_gives_baseline(self, tmp_path, content):
        """Test an unreadable newest prior is treated as no prior."""
        store = JsonSnapshotStore(tmp_path)
        store.write(make_snapshot(minutes_ago=60))
        corrupt = tmp_path / "posture_contoso_20260601T115900000000Z_broken.json"
        corrupt.write_bytes(content)

        assert store.latest_prior("Contoso", exclude_run_id="current") is None
        assert len(store.history("Contoso")) == 1

    def test_unrelated_files_ignored(self, tmp_path):
        """Test files not named like snapshots are ignored."""
        store = JsonSnapshotStore(tmp_path)
        (tmp_path / "notes.json").write_text("{}", encoding="utf-8")

        assert store.history("Contoso") == []


class TestGetSnapshotStore:
    """Tests for backend selection."""

    def test_nothing_configured_disables_history(self):
        assert get_snapshot_store("json") is None
        assert get_snapshot_store("sqlite") is None

    def test_json_backend(self, tmp_path):
        store = get_snapshot_store("json", snapshot_dir=tmp_path)

        assert isinstance(store, JsonSnapshotStore)
        assert store.location == str(tmp_path)

    def test_sqlite_defaults_into_snapshot_dir(self, tmp_path):
        """Test the sqlite backend puts its file in the snapshot directory."""
        store = get_snapshot_store("sqlite", snapshot_dir=tmp_path)

        assert isinstance(store, SqlSnapshotStore)
        assert store.location == f"sqlite:///{tmp_path / 'posture_snapshots.db'}"

    def test_explicit_database_url_wins(self, tmp_path):
        store = get_snapshot_store("sqlite", snapshot_dir=tmp_path, database_url="sqlite:///other.db")

        assert store.location == "sqlite:///other.db"

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown snapshot backend"):
            get_snapshot_store("redis", snapshot_dir="x")
