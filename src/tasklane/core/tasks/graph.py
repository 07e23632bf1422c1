"""
Dependency graph queries.

A read-only view over a snapshot of the task collection. Used by the task
service to report ready tasks and to warn when a batch leaves the
collection with a dependency cycle (cycles are allowed, not rejected).
"""

from __future__ import annotations

from .models import Task, TaskStatus


class DependencyGraph:
    """Immutable dependency graph built from a snapshot of tasks.

    An edge runs from a task to each task it depends on: the task cannot
    start until every dependency is completed.

    Dangling ids (dependencies on tasks no longer in the snapshot, e.g.
    after an overwrite) are ignored.

    Example::

        graph = DependencyGraph(store.load_all())
        graph.ready()        # pending tasks with all deps completed
        graph.find_cycle()   # e.g. ["a", "b", "a"], or None
    """

    __slots__ = ("_tasks", "_order", "_forward", "_completed")

    def __init__(self, tasks: list[Task]) -> None:
        self._tasks: dict[str, Task] = {t.id: t for t in tasks}
        self._order: list[str] = [t.id for t in tasks]
        self._completed: frozenset[str] = frozenset(
            t.id for t in tasks if t.status == TaskStatus.COMPLETED
        )
        self._forward: dict[str, list[str]] = {
            t.id: [d for d in t.dependencies if d in self._tasks] for t in tasks
        }

    def blocked_by(self, task_id: str) -> list[str]:
        """Dependencies of *task_id* that are not completed yet."""
        return [d for d in self._forward.get(task_id, []) if d not in self._completed]

    def ready(self) -> list[Task]:
        """Pending tasks whose dependencies are all completed, in store order."""
        return [
            self._tasks[tid]
            for tid in self._order
            if self._tasks[tid].status == TaskStatus.PENDING and not self.blocked_by(tid)
        ]

    def find_cycle(self) -> list[str] | None:
        """Return one dependency cycle as a list of ids, or None.

        Three-color DFS over dependency edges, visiting tasks in store order.
        The returned path starts and ends with the same id.
        """
        WHITE, GRAY, BLACK = 0, 1, 2  # noqa: N806
        color: dict[str, int] = {tid: WHITE for tid in self._order}
        stack: list[str] = []

        def _visit(node: str) -> list[str] | None:
            color[node] = GRAY
            stack.append(node)
            for dep in self._forward.get(node, []):
                if color[dep] == GRAY:
                    return stack[stack.index(dep) :] + [dep]
                if color[dep] == WHITE:
                    found = _visit(dep)
                    if found:
                        return found
            stack.pop()
            color[node] = BLACK
            return None

        for tid in self._order:
            if color[tid] == WHITE:
                found = _visit(tid)
                if found:
                    return found
        return None
