"""
Task service: the public operations of the task engine.

Wires the store, backups, reconciler and search engine together and exposes
the operations callers use: batch submission, status transitions, content
updates, lookups and search.

Usage:
    >>> from tasklane.core.services.tasks import TaskService
    >>> service = TaskService.from_config()
    >>> result = service.reconcile_batch("append", specs)
    >>> service.begin(result.tasks[0].id)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from tasklane.core.config import TasklaneConfig, load_config
from tasklane.core.services.models import ErrorCode, TaskResult, VerifyResult
from tasklane.core.tasks import lifecycle
from tasklane.core.tasks.backup import BackupManager
from tasklane.core.tasks.errors import (
    BackupError,
    DependencyError,
    StateError,
    TaskNotFoundError,
    TaskValidationError,
)
from tasklane.core.tasks.graph import DependencyGraph
from tasklane.core.tasks.models import (
    BackupHandle,
    Task,
    TaskContentUpdate,
    TaskCounts,
    TaskSpec,
    TaskStatus,
    UpdateMode,
)
from tasklane.core.tasks.parser import parse_task_specs
from tasklane.core.tasks.reconcile import BatchReconciler, BatchResult
from tasklane.core.tasks.resolver import DependencyResolver
from tasklane.core.tasks.search import SearchEngine, SearchMode, SearchPage
from tasklane.core.tasks.store import JsonTaskStore

logger = logging.getLogger(__name__)


def _parse_mode(mode: UpdateMode | str) -> UpdateMode | None:
    try:
        return UpdateMode(mode)
    except ValueError:
        return None


def _rejected(mode: UpdateMode, message: str, global_analysis: str | None) -> BatchResult:
    return BatchResult(
        success=False, mode=mode, global_analysis=global_analysis, message=message
    )


class TaskService:
    """
    Facade over the task store.

    Batch errors, a failed clearAllTasks backup included, are reported as
    ``BatchResult(success=False)``; single-task errors (unknown id, illegal
    state, bad input) as ``TaskResult`` / ``VerifyResult`` with
    ``success=False``. Any other ``PersistenceError`` propagates.

    Example:
        >>> service = TaskService(JsonTaskStore(path), BackupManager(backup_dir))
        >>> service.verify(task_id, 85, "Implemented and tested").completed
        True
    """

    def __init__(
        self,
        store: JsonTaskStore,
        backups: BackupManager,
        default_page_size: int = 5,
        max_page_size: int = 20,
        pass_threshold: int = lifecycle.VERIFY_PASS_THRESHOLD,
    ) -> None:
        """
        Initialize service with dependencies.

        Args:
            store: Task collection store
            backups: Backup snapshot manager
            default_page_size: Page size used when search is given none
            max_page_size: Largest accepted search page size
            pass_threshold: Minimum verify score that completes a task
        """
        self.store = store
        self.backups = backups
        self.default_page_size = default_page_size
        self.pass_threshold = pass_threshold
        self._reconciler = BatchReconciler(store, backups)
        self._search = SearchEngine(store, backups, max_page_size=max_page_size)

    @classmethod
    def from_config(
        cls,
        config: TasklaneConfig | None = None,
        project_dir: Path | None = None,
    ) -> TaskService:
        """
        Create a service from configuration.

        Args:
            config: Loaded configuration (loaded from ``project_dir`` if None)
            project_dir: Base for relative storage paths (defaults to cwd)

        Returns:
            Configured TaskService instance
        """
        if project_dir is None:
            project_dir = Path.cwd()
        if config is None:
            config = load_config(project_dir)

        storage = config.storage
        return cls(
            JsonTaskStore(storage.resolve_tasks_file(project_dir)),
            BackupManager(storage.resolve_backup_dir(project_dir)),
            default_page_size=config.search.default_page_size,
            max_page_size=config.search.max_page_size,
            pass_threshold=config.verification.pass_threshold,
        )

    # ============================================================================
    # Batches
    # ============================================================================

    def reconcile_batch(
        self,
        mode: UpdateMode | str,
        specs: Iterable[TaskSpec],
        global_analysis: str | None = None,
    ) -> BatchResult:
        """
        Apply a batch of task specs under ``mode``.

        Returns:
            BatchResult; on a rejected batch ``success`` is False, ``message``
            explains why and the store is unchanged
        """
        parsed_mode = _parse_mode(mode)
        if parsed_mode is None:
            return _rejected(UpdateMode.APPEND, f"Unknown update mode '{mode}'", global_analysis)
        mode = parsed_mode

        try:
            result = self._reconciler.run(mode, specs, global_analysis)
        except (TaskValidationError, DependencyError) as e:
            logger.info("Rejected %s batch: %s", mode.value, e)
            return _rejected(mode, str(e), global_analysis)
        except BackupError as e:
            logger.error("Aborted %s batch, backup failed: %s", mode.value, e)
            return _rejected(mode, str(e), global_analysis)

        cycle = DependencyGraph(result.all_tasks).find_cycle()
        if cycle:
            logger.warning("Task dependencies form a cycle: %s", " -> ".join(cycle))
        return result

    def reconcile_raw(
        self,
        mode: UpdateMode | str,
        raw: str,
        global_analysis: str | None = None,
    ) -> BatchResult:
        """Like ``reconcile_batch``, taking the batch as JSON text."""
        try:
            specs = parse_task_specs(raw)
        except TaskValidationError as e:
            return _rejected(_parse_mode(mode) or UpdateMode.APPEND, str(e), global_analysis)
        return self.reconcile_batch(mode, specs, global_analysis)

    # ============================================================================
    # Status transitions
    # ============================================================================

    def begin(self, task_id: str) -> TaskResult:
        """Move a pending task to in progress."""
        try:
            with self.store.transaction() as txn:
                task = lifecycle.begin(txn.find(task_id))
                txn.put(task)
        except TaskNotFoundError as e:
            return TaskResult.fail(ErrorCode.NOT_FOUND, str(e))
        except StateError as e:
            return TaskResult.fail(ErrorCode.INVALID_STATE, str(e))

        logger.info("Started task %s", task_id)
        return TaskResult.ok(task, f"Task '{task.name}' is now in progress")

    def verify(self, task_id: str, score: int, summary: str) -> VerifyResult:
        """
        Score an in-progress task.

        A score at or above the pass threshold completes the task with
        ``summary``; a lower score leaves it in progress.
        """
        if not 0 <= score <= 100:
            return VerifyResult(
                success=False,
                error_code=ErrorCode.INVALID_INPUT,
                message=f"Score must be between 0 and 100, got {score}",
                score=score,
                summary=summary,
            )

        try:
            with self.store.transaction() as txn:
                outcome = lifecycle.verify(
                    txn.find(task_id), score, summary, threshold=self.pass_threshold
                )
                if outcome.completed:
                    txn.put(outcome.task)
        except TaskNotFoundError as e:
            return VerifyResult(
                success=False, error_code=ErrorCode.NOT_FOUND, message=str(e), score=score
            )
        except StateError as e:
            return VerifyResult(
                success=False, error_code=ErrorCode.INVALID_STATE, message=str(e), score=score
            )
        except TaskValidationError as e:
            return VerifyResult(
                success=False, error_code=ErrorCode.INVALID_INPUT, message=str(e), score=score
            )

        if outcome.completed:
            logger.info("Completed task %s with score %d", task_id, score)
            message = f"Task '{outcome.task.name}' completed"
        else:
            message = (
                f"Score {score} is below {self.pass_threshold}; "
                f"task '{outcome.task.name}' stays in progress"
            )
        return VerifyResult(
            task=outcome.task,
            message=message,
            score=score,
            summary=summary,
            completed=outcome.completed,
        )

    # ============================================================================
    # Content updates
    # ============================================================================

    def update_content(self, task_id: str, update: TaskContentUpdate) -> TaskResult:
        """
        Edit a task's content fields.

        Only fields set on ``update`` change. Dependencies are resolved
        against the tasks already in the store. Completed tasks cannot be
        edited.
        """
        if update.is_empty:
            return TaskResult.fail(ErrorCode.INVALID_INPUT, "No fields to update were provided")

        try:
            with self.store.transaction() as txn:
                current = txn.find(task_id)
                lifecycle.ensure_editable(current)
                task = self._apply_update(current, update, txn.tasks)
                txn.put(task)
        except TaskNotFoundError as e:
            return TaskResult.fail(ErrorCode.NOT_FOUND, str(e))
        except StateError as e:
            return TaskResult.fail(ErrorCode.INVALID_STATE, str(e))
        except (TaskValidationError, DependencyError) as e:
            return TaskResult.fail(ErrorCode.INVALID_INPUT, str(e))

        logger.info("Updated task %s", task_id)
        return TaskResult.ok(task, f"Task '{task.name}' updated")

    @staticmethod
    def _apply_update(task: Task, update: TaskContentUpdate, pool: list[Task]) -> Task:
        changes: dict = {
            name: getattr(update, name)
            for name in type(update).model_fields
            if name != "dependencies" and getattr(update, name) is not None
        }
        if update.dependencies is not None:
            resolver = DependencyResolver.from_tasks(pool)
            dependencies = resolver.resolve(task.name, update.dependencies)
            if task.id in dependencies:
                raise TaskValidationError(f"Task '{task.name}' cannot depend on itself")
            changes["dependencies"] = dependencies
        changes["updated_at"] = datetime.now()
        return task.model_copy(update=changes)

    # ============================================================================
    # Queries
    # ============================================================================

    def get_task(self, task_id: str) -> TaskResult:
        """Look up one task by id."""
        try:
            return TaskResult.ok(self.store.get_by_id(task_id))
        except TaskNotFoundError as e:
            return TaskResult.fail(ErrorCode.NOT_FOUND, str(e))

    def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        """All tasks in store order, optionally filtered by status."""
        return self.store.list_tasks(status)

    def search(
        self,
        query: str,
        mode: SearchMode | str = SearchMode.KEYWORD,
        page: int = 1,
        page_size: int | None = None,
        include_history: bool = False,
    ) -> SearchPage:
        """
        Search tasks by id prefix or keywords.

        Raises:
            TaskValidationError: If ``mode`` is unknown or ``page`` or
                ``page_size`` is out of range
        """
        return self._search.search(
            query,
            mode,
            page=page,
            page_size=self.default_page_size if page_size is None else page_size,
            include_history=include_history,
        )

    def ready_tasks(self) -> list[Task]:
        """Pending tasks whose dependencies are all completed."""
        return DependencyGraph(self.store.load_all()).ready()

    def get_task_counts(self) -> TaskCounts:
        return self.store.get_task_counts()

    def list_backups(self) -> list[BackupHandle]:
        return self.backups.list_backups()
