"""
Dependency reference resolution.

Callers may point at a prerequisite task either by id or by name. The
resolver turns those references into canonical task ids, using a lookup
table built once per batch from the existing pool and the tasks being
submitted in the same batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .errors import DependencyError
from .models import ByExactId, ByName, DependencyRef, RawDependency

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PoolEntry:
    """The (id, name) pair the resolver needs from a candidate task."""

    id: str
    name: str


class DependencyResolver:
    """
    Resolves dependency references against existing and same-batch tasks.

    Resolution policy:

    * a reference that equals a known task id is a ``ByExactId``;
      anything else is a ``ByName``
    * names match exactly (case-sensitive); when the same name appears in
      both pools the same-batch task wins, and among duplicated existing
      names the later task in store order wins
    * a reference that matches nothing raises ``DependencyError``

    Cycles are not detected here; a cyclic graph resolves normally.

    Example::

        resolver = DependencyResolver(existing=store_tasks, batch=new_entries)
        ids = resolver.resolve("Write API", ["Set up schema", "4f1c..."])
    """

    __slots__ = ("_ids", "_names")

    def __init__(
        self,
        existing: Iterable[PoolEntry],
        batch: Iterable[PoolEntry] = (),
    ) -> None:
        self._ids: set[str] = set()
        self._names: dict[str, str] = {}

        # Batch entries go in last so they override existing names.
        for entry in list(existing) + list(batch):
            self._ids.add(entry.id)
            self._names[entry.name] = entry.id

    @classmethod
    def from_tasks(cls, existing: Iterable, batch: Iterable = ()) -> DependencyResolver:
        """Build a resolver from any objects exposing ``id`` and ``name``."""
        return cls(
            existing=(PoolEntry(t.id, t.name) for t in existing),
            batch=(PoolEntry(t.id, t.name) for t in batch),
        )

    def classify(self, raw: RawDependency) -> DependencyRef:
        """Turn a raw reference into a typed one."""
        if isinstance(raw, (ByExactId, ByName)):
            return raw
        if raw in self._ids:
            return ByExactId(task_id=raw)
        return ByName(name=raw)

    def resolve_one(self, task_name: str, ref: DependencyRef) -> str:
        """
        Resolve a single typed reference.

        Args:
            task_name: Name of the task declaring the dependency (for errors)
            ref: The reference to resolve

        Returns:
            The canonical task id

        Raises:
            DependencyError: If the reference matches no task
        """
        if isinstance(ref, ByExactId):
            if ref.task_id in self._ids:
                return ref.task_id
            raise DependencyError(task_name, ref.task_id)

        task_id = self._names.get(ref.name)
        if task_id is None:
            raise DependencyError(task_name, ref.name)
        return task_id

    def resolve(self, task_name: str, refs: Sequence[RawDependency]) -> list[str]:
        """
        Resolve all references declared by one task.

        Returns:
            Canonical ids in declaration order, without duplicates
        """
        resolved: list[str] = []
        for raw in refs:
            task_id = self.resolve_one(task_name, self.classify(raw))
            if task_id not in resolved:
                resolved.append(task_id)
        logger.debug("Resolved %d dependencies for %r", len(resolved), task_name)
        return resolved
