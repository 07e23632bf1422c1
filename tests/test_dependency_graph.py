"""Tests for DependencyGraph: readiness and cycle queries over a snapshot."""

from __future__ import annotations

from tasklane.core.tasks.graph import DependencyGraph
from tasklane.core.tasks.models import Task, TaskStatus

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _task(
    tid: str,
    dependencies: list[str] | None = None,
    status: TaskStatus = TaskStatus.PENDING,
) -> Task:
    """Shorthand for creating a minimal Task."""
    return Task(
        id=tid,
        name=f"Task {tid}",
        status=status,
        summary="done" if status == TaskStatus.COMPLETED else None,
        dependencies=dependencies or [],
    )


# ---------------------------------------------------------------------------
# Empty graph
# ---------------------------------------------------------------------------


class TestEmptyGraph:
    def test_ready_empty(self) -> None:
        assert DependencyGraph([]).ready() == []

    def test_no_cycle_empty(self) -> None:
        assert DependencyGraph([]).find_cycle() is None

    def test_blocked_by_unknown_id(self) -> None:
        assert DependencyGraph([]).blocked_by("x") == []


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


class TestReady:
    def test_tasks_without_dependencies_are_ready(self) -> None:
        g = DependencyGraph([_task("a"), _task("b")])
        assert [t.id for t in g.ready()] == ["a", "b"]

    def test_blocked_by_open_dependency(self) -> None:
        g = DependencyGraph([_task("a"), _task("b", ["a"])])
        assert [t.id for t in g.ready()] == ["a"]
        assert g.blocked_by("b") == ["a"]

    def test_unblocked_once_dependency_completed(self) -> None:
        g = DependencyGraph([_task("a", status=TaskStatus.COMPLETED), _task("b", ["a"])])
        assert [t.id for t in g.ready()] == ["b"]
        assert g.blocked_by("b") == []

    def test_in_progress_tasks_are_not_ready(self) -> None:
        g = DependencyGraph([_task("a", status=TaskStatus.IN_PROGRESS)])
        assert g.ready() == []

    def test_dangling_dependency_ignored(self) -> None:
        """A dependency on a task no longer present does not block."""
        g = DependencyGraph([_task("b", ["gone"])])
        assert [t.id for t in g.ready()] == ["b"]

    def test_store_order_kept(self) -> None:
        g = DependencyGraph([_task("z"), _task("a"), _task("m")])
        assert [t.id for t in g.ready()] == ["z", "a", "m"]


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCycles:
    def test_acyclic(self) -> None:
        g = DependencyGraph([_task("a"), _task("b", ["a"]), _task("c", ["a", "b"])])
        assert g.find_cycle() is None

    def test_two_node_cycle(self) -> None:
        g = DependencyGraph([_task("a", ["b"]), _task("b", ["a"])])
        cycle = g.find_cycle()
        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b"}

    def test_self_loop(self) -> None:
        g = DependencyGraph([_task("a", ["a"])])
        assert g.find_cycle() == ["a", "a"]

    def test_longer_cycle(self) -> None:
        g = DependencyGraph(
            [_task("x"), _task("a", ["c"]), _task("b", ["a"]), _task("c", ["b"])]
        )
        cycle = g.find_cycle()
        assert cycle is not None
        assert "x" not in cycle
        assert set(cycle) == {"a", "b", "c"}
