"""Unit tests for backup.orphan_reconciler module."""

import pytest
from unittest.mock import patch

from src.backup.models import SyncRecord
from src.backup.orphan_reconciler import OrphanReconciler
from src.backup.state_store import StateStore


@pytest.fixture
def store(tmp_path):
    store = StateStore(tmp_path / ".backup-state.json", tmp_path)
    store.load()
    notes = tmp_path / "Notes"
    notes.mkdir()
    for page_id, title in (("keep", "Keep"), ("gone", "Gone")):
        (notes / f"{title}.md").write_text(f"# {title}\n")
        store.record(page_id, SyncRecord("m", f"Notes/{title}.md", title))
    return store


class TestFindOrphans:
    """Test cases for OrphanReconciler.find_orphans."""

    def test_ids_missing_from_remote(self, store):
        assert OrphanReconciler(store).find_orphans({"keep"}) == ["gone"]

    def test_no_orphans(self, store):
        assert OrphanReconciler(store).find_orphans({"keep", "gone", "new"}) == []


class TestReconcile:
    """Test cases for OrphanReconciler.reconcile."""

    def test_deletes_file_and_prunes_record(self, store, tmp_path):
        removed = OrphanReconciler(store).reconcile({"keep"})

        assert removed == 1
        assert not (tmp_path / "Notes" / "Gone.md").exists()
        assert (tmp_path / "Notes" / "Keep.md").exists()
        assert store.ids() == ["keep"]

    def test_dryrun_touches_nothing(self, store, tmp_path):
        removed = OrphanReconciler(store).reconcile({"keep"}, dryrun=True)

        assert removed == 1
        assert (tmp_path / "Notes" / "Gone.md").exists()
        assert sorted(store.ids()) == ["gone", "keep"]

    def test_already_missing_file_still_prunes(self, store, tmp_path):
        (tmp_path / "Notes" / "Gone.md").unlink()

        assert OrphanReconciler(store).reconcile({"keep"}) == 1
        assert store.get("gone") is None

    def test_delete_failure_keeps_record(self, store, tmp_path):
        with patch('pathlib.Path.unlink', side_effect=PermissionError("read-only")):
            removed = OrphanReconciler(store).reconcile({"keep"})

        assert removed == 0
        assert store.get("gone") is not None
        assert (tmp_path / "Notes" / "Gone.md").exists()

    def test_everything_orphaned(self, store, tmp_path):
        assert OrphanReconciler(store).reconcile(set()) == 2
        assert len(store) == 0
        assert list((tmp_path / "Notes").iterdir()) == []
