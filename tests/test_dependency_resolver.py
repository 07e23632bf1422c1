"""Tests for DependencyResolver: id-or-name references to canonical ids."""

from __future__ import annotations

import pytest

from tasklane.core.tasks.errors import DependencyError
from tasklane.core.tasks.models import ByExactId, ByName
from tasklane.core.tasks.resolver import DependencyResolver, PoolEntry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolver(existing=(), batch=()) -> DependencyResolver:
    return DependencyResolver(
        existing=[PoolEntry(tid, name) for tid, name in existing],
        batch=[PoolEntry(tid, name) for tid, name in batch],
    )


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassify:
    def test_known_id_is_exact_id(self) -> None:
        r = _resolver(existing=[("id-1", "Setup")])
        assert r.classify("id-1") == ByExactId(task_id="id-1")

    def test_anything_else_is_name(self) -> None:
        r = _resolver(existing=[("id-1", "Setup")])
        assert r.classify("Setup") == ByName(name="Setup")
        assert r.classify("id-2") == ByName(name="id-2")

    def test_typed_reference_passes_through(self) -> None:
        r = _resolver()
        ref = ByName(name="x")
        assert r.classify(ref) is ref


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolve:
    def test_by_id_from_existing(self) -> None:
        r = _resolver(existing=[("id-1", "Setup")])
        assert r.resolve("B", ["id-1"]) == ["id-1"]

    def test_by_name_from_existing(self) -> None:
        r = _resolver(existing=[("id-1", "Setup")])
        assert r.resolve("B", ["Setup"]) == ["id-1"]

    def test_by_name_from_batch(self) -> None:
        r = _resolver(batch=[("new-1", "A"), ("new-2", "B")])
        assert r.resolve("B", ["A"]) == ["new-1"]

    def test_names_are_case_sensitive(self) -> None:
        r = _resolver(existing=[("id-1", "Setup")])
        with pytest.raises(DependencyError):
            r.resolve("B", ["setup"])

    def test_batch_name_wins_over_existing(self) -> None:
        r = _resolver(existing=[("old", "A")], batch=[("new", "A")])
        assert r.resolve("B", ["A"]) == ["new"]

    def test_later_existing_duplicate_wins(self) -> None:
        r = _resolver(existing=[("first", "A"), ("second", "A")])
        assert r.resolve("B", ["A"]) == ["second"]

    def test_existing_id_still_reachable_when_name_shadowed(self) -> None:
        r = _resolver(existing=[("old", "A")], batch=[("new", "A")])
        assert r.resolve("B", ["old"]) == ["old"]

    def test_order_kept_and_duplicates_collapsed(self) -> None:
        r = _resolver(existing=[("id-1", "A"), ("id-2", "B")])
        assert r.resolve("C", ["B", "A", "id-2", "B"]) == ["id-2", "id-1"]

    def test_typed_references(self) -> None:
        r = _resolver(existing=[("id-1", "A")])
        assert r.resolve("C", [ByExactId(task_id="id-1"), ByName(name="A")]) == ["id-1"]

    def test_empty(self) -> None:
        assert _resolver().resolve("C", []) == []

    def test_unknown_name(self) -> None:
        r = _resolver(existing=[("id-1", "A")], batch=[("new-1", "B")])
        with pytest.raises(DependencyError) as exc_info:
            r.resolve("B", ["Missing"])
        assert exc_info.value.task_name == "B"
        assert exc_info.value.reference == "Missing"

    def test_unknown_exact_id(self) -> None:
        r = _resolver(existing=[("id-1", "A")])
        with pytest.raises(DependencyError, match="id-9"):
            r.resolve("B", [ByExactId(task_id="id-9")])

    def test_exact_id_never_matches_a_name(self) -> None:
        r = _resolver(existing=[("id-1", "A")])
        with pytest.raises(DependencyError):
            r.resolve("B", [ByExactId(task_id="A")])


class TestFromTasks:
    def test_builds_from_task_objects(self, make_task) -> None:
        existing = make_task("A")
        batch = make_task("B")
        r = DependencyResolver.from_tasks([existing], [batch])
        assert r.resolve("C", ["A", "B"]) == [existing.id, batch.id]
