"""
Batch reconciliation.

Applies a submitted batch of task specs to the store under one of four
update modes (append, overwrite, selective, clearAllTasks). Every run is a
single store transaction: name uniqueness and dependency resolution are
checked against the loaded collection before anything is mutated, and a
failure leaves the persisted collection exactly as it was.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from .backup import BackupManager
from .errors import TaskValidationError
from .models import BackupHandle, Task, TaskSpec, TaskStatus, UpdateMode
from .resolver import DependencyResolver, PoolEntry
from .store import JsonTaskStore

logger = logging.getLogger(__name__)

# Fields a selective update may overwrite on an existing task.
SELECTIVE_FIELDS = (
    "description",
    "notes",
    "implementation_guide",
    "verification_criteria",
    "related_files",
)


class BatchResult(BaseModel):
    """
    Outcome of a batch submission.

    ``tasks`` holds the tasks created or updated by the batch, in the order
    of the submitted specs. ``all_tasks`` is the full collection after the
    batch was applied, for callers that report on the whole plan.
    """

    success: bool = Field(default=True, description="Whether the batch was applied")
    mode: UpdateMode = Field(..., description="Update mode used")
    tasks: list[Task] = Field(default_factory=list, description="Created or updated tasks")
    all_tasks: list[Task] = Field(default_factory=list, description="Collection after the batch")
    backup: BackupHandle | None = Field(default=None, description="Snapshot taken, if any")
    global_analysis: str | None = Field(
        default=None, description="Free-text analysis attached to the batch, passed through"
    )
    message: str = Field(default="", description="Short description of what happened")


class _Planned:
    """A spec paired with the id it will be stored under."""

    __slots__ = ("spec", "task_id", "existing")

    def __init__(self, spec: TaskSpec, task_id: str, existing: Task | None) -> None:
        self.spec = spec
        self.task_id = task_id
        self.existing = existing


class BatchReconciler:
    """
    Reconciles incoming batches with the stored collection.

    Mode semantics:

    * **append**: existing tasks are untouched; every spec becomes a new
      pending task. Dependencies resolve against existing + batch.
    * **overwrite**: unfinished tasks are discarded, completed tasks are
      kept; specs are added as in append. Dependencies resolve against the
      kept completed tasks + batch.
    * **selective**: a spec whose name matches an existing task (in any
      status) updates it in place, keeping its id, creation time and
      status; other specs become new tasks. Unmentioned tasks are kept.
      Dependencies resolve against the whole store + batch.
    * **clearAllTasks**: the whole store is backed up, then discarded, then
      specs are added as in append against an empty store.

    Example:
        >>> reconciler = BatchReconciler(store, BackupManager(backup_dir))
        >>> result = reconciler.run(UpdateMode.APPEND, specs)
        >>> [t.name for t in result.tasks]
    """

    def __init__(self, store: JsonTaskStore, backups: BackupManager) -> None:
        self._store = store
        self._backups = backups

    @staticmethod
    def check_unique_names(specs: Iterable[TaskSpec]) -> None:
        """
        Reject a batch in which two specs share a name.

        Raises:
            TaskValidationError: On the first duplicated name
        """
        seen: set[str] = set()
        for spec in specs:
            if spec.name in seen:
                raise TaskValidationError(
                    f"Duplicate task name '{spec.name}' in batch; task names must be unique"
                )
            seen.add(spec.name)

    def run(
        self,
        mode: UpdateMode | str,
        specs: Iterable[TaskSpec],
        global_analysis: str | None = None,
    ) -> BatchResult:
        """
        Apply a batch.

        Args:
            mode: Update mode
            specs: Task specifications, in submission order
            global_analysis: Optional batch-level annotation, returned as is

        Returns:
            BatchResult describing the created/updated tasks

        Raises:
            TaskValidationError: Duplicate names in the batch
            DependencyError: A dependency reference matches no task
            BackupError: The snapshot before clearAllTasks failed
            PersistenceError: The save failed
        """
        mode = UpdateMode(mode)
        specs = list(specs)
        self.check_unique_names(specs)

        with self._store.transaction() as txn:
            existing = list(txn.tasks)
            kept, pool = self._select_kept(mode, existing)
            planned = self._plan(mode, specs, existing)

            resolver = DependencyResolver(
                existing=(PoolEntry(t.id, t.name) for t in pool),
                batch=(PoolEntry(p.task_id, p.spec.name) for p in planned),
            )
            resolved = [resolver.resolve(p.spec.name, p.spec.dependencies) for p in planned]

            # Everything below mutates; all checks have passed.
            backup: BackupHandle | None = None
            if mode.is_destructive and existing:
                backup = self._backups.snapshot(existing)

            now = datetime.now()
            touched: list[Task] = []
            updated_by_id: dict[str, Task] = {}
            created: list[Task] = []
            for item, dependencies in zip(planned, resolved):
                if item.existing is not None:
                    task = self._apply_selective(item.existing, item.spec, dependencies, now)
                    updated_by_id[task.id] = task
                else:
                    task = self._create(item.task_id, item.spec, dependencies, now)
                    created.append(task)
                touched.append(task)

            collection = [updated_by_id.get(t.id, t) for t in kept] + created
            txn.replace_all(collection)

        message = self._describe(mode, len(created), len(updated_by_id), backup)
        logger.info(
            "Applied %s batch: %d created, %d updated, %d total",
            mode.value,
            len(created),
            len(updated_by_id),
            len(collection),
        )
        return BatchResult(
            mode=mode,
            tasks=touched,
            all_tasks=collection,
            backup=backup,
            global_analysis=global_analysis,
            message=message,
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    @staticmethod
    def _select_kept(mode: UpdateMode, existing: list[Task]) -> tuple[list[Task], list[Task]]:
        """Return (tasks kept in the store, dependency pool of existing tasks)."""
        if mode == UpdateMode.OVERWRITE:
            completed = [t for t in existing if t.status == TaskStatus.COMPLETED]
            return completed, completed
        if mode == UpdateMode.CLEAR_ALL_TASKS:
            return [], []
        return existing, existing

    @staticmethod
    def _plan(mode: UpdateMode, specs: list[TaskSpec], existing: list[Task]) -> list[_Planned]:
        """Assign each spec its final id, matching by name in selective mode."""
        by_name: dict[str, Task] = {}
        if mode == UpdateMode.SELECTIVE:
            # Later tasks win when names repeat in the store
            by_name = {t.name: t for t in existing}

        planned: list[_Planned] = []
        for spec in specs:
            match = by_name.get(spec.name)
            task_id = match.id if match is not None else str(uuid4())
            planned.append(_Planned(spec, task_id, match))
        return planned

    # ------------------------------------------------------------------
    # Building tasks
    # ------------------------------------------------------------------

    @staticmethod
    def _create(task_id: str, spec: TaskSpec, dependencies: list[str], now: datetime) -> Task:
        return Task(
            id=task_id,
            name=spec.name,
            description=spec.description,
            notes=spec.notes,
            implementation_guide=spec.implementation_guide,
            verification_criteria=spec.verification_criteria,
            dependencies=dependencies,
            related_files=list(spec.related_files),
            status=TaskStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _apply_selective(
        task: Task, spec: TaskSpec, dependencies: list[str], now: datetime
    ) -> Task:
        """
        Update an existing task's content from a spec.

        Only fields set on the TaskSpec are replaced; id, name, creation
        time, status and summary are preserved.
        """
        update: dict = {"updated_at": now}
        for field in SELECTIVE_FIELDS:
            if field in spec.model_fields_set:
                update[field] = getattr(spec, field)
        if "dependencies" in spec.model_fields_set:
            update["dependencies"] = dependencies
        return task.model_copy(update=update)

    @staticmethod
    def _describe(
        mode: UpdateMode, created: int, updated: int, backup: BackupHandle | None
    ) -> str:
        if mode == UpdateMode.APPEND:
            return f"Appended {created} new task(s)."
        if mode == UpdateMode.OVERWRITE:
            return f"Cleared unfinished tasks and created {created} new task(s)."
        if mode == UpdateMode.SELECTIVE:
            return f"Updated {updated} and created {created} task(s)."
        if backup is not None:
            return f"Cleared all tasks (backup: {backup.name}) and created {created} new task(s)."
        return f"Store was empty; created {created} new task(s)."
