"""
Tests for JsonTaskStore.

Tests loading and saving the task file, the transaction contract,
atomic writes, the read cache, and the single-writer lock.
"""

import json
import threading
from unittest.mock import patch

import pytest

from tasklane.core.tasks.errors import (
    PersistenceError,
    TaskNotFoundError,
    TasksFileCorruptedError,
)
from tasklane.core.tasks.models import TaskStatus
from tasklane.core.tasks.store import JsonTaskStore

# ==============================================================================
# Loading
# ==============================================================================


class TestLoad:
    """Test reading the task file."""

    def test_missing_file_is_empty_store(self, store):
        """A missing file reads as an empty collection and is not created."""
        assert store.load_all() == []
        assert not store.tasks_file.exists()

    def test_round_trip_preserves_order(self, store, make_task):
        """Tasks load back in the order they were saved."""
        tasks = [make_task(name) for name in ("C", "A", "B")]
        store.save_all(tasks)

        loaded = store.load_all()
        assert [t.name for t in loaded] == ["C", "A", "B"]
        assert [t.id for t in loaded] == [t.id for t in tasks]

    def test_file_format(self, store, make_task):
        """The file is an object holding a camelCase task list."""
        store.save_all([make_task("A", implementation_guide="guide")])

        data = json.loads(store.tasks_file.read_text())
        assert list(data) == ["tasks"]
        assert data["tasks"][0]["implementationGuide"] == "guide"

    def test_invalid_json(self, store):
        """Garbage in the file is reported as corruption."""
        store.tasks_file.write_text("{not json")
        with pytest.raises(TasksFileCorruptedError):
            store.load_all()

    def test_wrong_shape(self, store):
        """A file whose tasks entry is not a list is corrupted."""
        store.tasks_file.write_text(json.dumps({"tasks": {"a": 1}}))
        with pytest.raises(TasksFileCorruptedError):
            store.load_all()

    def test_invalid_task(self, store):
        """A task that fails validation is corrupted."""
        store.tasks_file.write_text(json.dumps({"tasks": [{"id": "x"}]}))
        with pytest.raises(TasksFileCorruptedError, match="x"):
            store.load_all()

    def test_corrupted_error_is_persistence_error(self, store):
        """Corruption is a kind of persistence failure."""
        store.tasks_file.write_text("[")
        with pytest.raises(PersistenceError):
            store.load_all()

    def test_external_change_is_seen(self, store, make_task):
        """The read cache is invalidated when the file changes on disk."""
        store.save_all([make_task("A")])
        assert len(store.load_all()) == 1

        other = JsonTaskStore(store.tasks_file)
        other.save_all([make_task("A"), make_task("B with a longer name")])

        assert [t.name for t in store.load_all()] == ["A", "B with a longer name"]

    def test_loaded_tasks_are_independent(self, store, make_task):
        """Mutating a loaded task does not touch the store."""
        store.save_all([make_task("A")])
        task = store.load_all()[0]
        task.notes = "changed"
        assert store.load_all()[0].notes is None


# ==============================================================================
# Queries
# ==============================================================================


class TestQueries:
    """Test lookup helpers."""

    def test_get_by_id(self, store, make_task):
        task = make_task("A")
        store.save_all([make_task("B"), task])
        assert store.get_by_id(task.id).name == "A"

    def test_get_by_id_missing(self, store):
        with pytest.raises(TaskNotFoundError) as exc_info:
            store.get_by_id("nope")
        assert exc_info.value.task_id == "nope"

    def test_list_tasks_by_status(self, store, make_task):
        store.save_all(
            [
                make_task("A"),
                make_task("B", status=TaskStatus.IN_PROGRESS),
                make_task("C", status=TaskStatus.COMPLETED),
                make_task("D"),
            ]
        )
        assert [t.name for t in store.list_tasks(TaskStatus.PENDING)] == ["A", "D"]
        assert [t.name for t in store.list_tasks()] == ["A", "B", "C", "D"]

    def test_get_task_counts(self, store, make_task):
        store.save_all(
            [
                make_task("A"),
                make_task("B", status=TaskStatus.IN_PROGRESS),
                make_task("C", status=TaskStatus.COMPLETED),
            ]
        )
        counts = store.get_task_counts()
        assert (counts.total, counts.pending, counts.in_progress, counts.completed) == (
            3,
            1,
            1,
            1,
        )


# ==============================================================================
# Transactions and atomic writes
# ==============================================================================


class TestTransaction:
    """Test the load -> mutate -> save critical section."""

    def test_put_appends_and_persists(self, store, make_task):
        with store.transaction() as txn:
            txn.put(make_task("A"))
        assert [t.name for t in store.load_all()] == ["A"]

    def test_put_replaces_in_place(self, store, make_task):
        a, b = make_task("A"), make_task("B")
        store.save_all([a, b])

        with store.transaction() as txn:
            txn.put(a.model_copy(update={"notes": "edited"}))

        loaded = store.load_all()
        assert [t.name for t in loaded] == ["A", "B"]
        assert loaded[0].notes == "edited"

    def test_unchanged_transaction_writes_nothing(self, store):
        with store.transaction() as txn:
            assert txn.tasks == []
        assert not store.tasks_file.exists()

    def test_find_missing(self, store):
        with pytest.raises(TaskNotFoundError):
            with store.transaction() as txn:
                txn.find("nope")

    def test_exception_discards_changes(self, store, make_task):
        """If the block raises, the file is left as it was."""
        store.save_all([make_task("A")])
        before = store.tasks_file.read_bytes()

        with pytest.raises(RuntimeError):
            with store.transaction() as txn:
                txn.replace_all([make_task("X")])
                raise RuntimeError("boom")

        assert store.tasks_file.read_bytes() == before

    def test_failed_replace_keeps_old_file(self, store, make_task):
        """A failing rename leaves the old file and no temp files behind."""
        store.save_all([make_task("A")])
        before = store.tasks_file.read_bytes()

        with patch("tasklane.core.tasks.store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError, match="disk full"):
                store.save_all([make_task("B")])

        assert store.tasks_file.read_bytes() == before
        leftovers = [p for p in store.tasks_file.parent.iterdir() if p.name.startswith(".tasks_")]
        assert leftovers == []

    def test_save_inside_transaction_does_not_deadlock(self, store, make_task):
        """The writer lock is re-entrant; the transaction's collection is what lands."""
        with store.transaction() as txn:
            store.save_all([make_task("A")])
            txn.put(make_task("B"))
        assert [t.name for t in store.load_all()] == ["B"]

    def test_transaction_rereads_from_disk(self, store, make_task):
        """A transaction sees writes made through another store instance."""
        store.load_all()
        JsonTaskStore(store.tasks_file).save_all([make_task("A")])

        with store.transaction() as txn:
            assert [t.name for t in txn.tasks] == ["A"]

    def test_concurrent_writers_do_not_lose_updates(self, store, make_task):
        """Interleaved read-modify-write cycles from many writers all land."""
        errors: list[Exception] = []

        def worker(i: int) -> None:
            try:
                writer = JsonTaskStore(store.tasks_file)
                with writer.transaction() as txn:
                    txn.put(make_task(f"T{i}"))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(t.name for t in store.load_all()) == sorted(f"T{i}" for i in range(8))

    def test_readers_during_writes_see_whole_collections(self, store, make_task):
        """Unlocked readers racing a writer always get a complete collection."""
        store.save_all([make_task("seed")])
        stop = threading.Event()
        errors: list[Exception] = []
        sizes: set[int] = set()

        def reader() -> None:
            try:
                while not stop.is_set():
                    sizes.add(len(store.load_all()))
            except Exception as e:
                errors.append(e)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        try:
            for i in range(100):
                with store.transaction() as txn:
                    txn.replace_all([make_task(f"T{j}") for j in range(i % 3 + 1)])
        finally:
            stop.set()
            for t in readers:
                t.join()

        assert errors == []
        assert sizes <= {1, 2, 3}

    def test_cache_entry_pairs_key_with_data(self, store, make_task):
        """The cache holds the file key and its data as one value."""
        store.save_all([make_task("A")])
        store.load_all()

        key, raw_tasks = store._cache
        assert key == store._stat_key()
        assert [t["name"] for t in raw_tasks] == ["A"]

        store.save_all([make_task("B")])
        assert store._cache is None
