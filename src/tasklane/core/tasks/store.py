"""
JSON file task store (tasks.json).

Owns the authoritative ordered task collection. The whole collection is
rewritten on every save, using a temporary file and an atomic rename so a
reader never observes a half-written file.

Every mutation goes through ``transaction()``, which holds a single-writer
lock (an in-process RLock plus an ``fcntl`` lock on a sibling ``.lock``
file) across load -> validate -> mutate -> save.
"""

import fcntl
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .errors import PersistenceError, TaskNotFoundError, TasksFileCorruptedError
from .models import Task, TaskCounts, TaskStatus

logger = logging.getLogger(__name__)

_CacheKey = tuple[int, int, int]


def _discard(temp_path: str) -> None:
    """Remove a temporary file left behind by a failed write."""
    try:
        os.unlink(temp_path)
    except OSError:
        pass


class TaskTransaction:
    """
    Working copy of the task collection inside ``JsonTaskStore.transaction()``.

    Mutations are only persisted if the transaction was changed through
    ``replace_all`` or ``put``.
    """

    def __init__(self, tasks: list[Task]) -> None:
        self.tasks = tasks
        self.changed = False

    def find(self, task_id: str) -> Task:
        """Return the task with ``task_id`` or raise TaskNotFoundError."""
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise TaskNotFoundError(task_id)

    def put(self, task: Task) -> None:
        """Replace the task with the same id in place, or append it."""
        for i, existing in enumerate(self.tasks):
            if existing.id == task.id:
                self.tasks[i] = task
                break
        else:
            self.tasks.append(task)
        self.changed = True

    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Swap in a whole new collection."""
        self.tasks = list(tasks)
        self.changed = True


class JsonTaskStore:
    """
    Task store that keeps the whole collection in one JSON file.

    File format:
        {
            "tasks": [
                {"id": "...", "name": "...", "status": "pending", ...}
            ]
        }

    Example:
        >>> store = JsonTaskStore(Path("data/tasks.json"))
        >>> with store.transaction() as txn:
        ...     txn.put(task)
        >>> store.get_by_id(task.id)
    """

    def __init__(self, tasks_file: Path) -> None:
        """
        Initialize the store.

        Args:
            tasks_file: Path of the JSON file holding the task collection.
                The parent directory is created on first save.
        """
        self.tasks_file = Path(tasks_file)
        self.lock_file = self.tasks_file.with_name(self.tasks_file.name + ".lock")

        self._write_lock = threading.RLock()
        # Nesting depth of _exclusive() for the thread holding _write_lock
        self._lock_depth = 0

        # Cache of the raw task dicts, keyed by (inode, mtime_ns, size)
        self._cache: tuple[_CacheKey, list[dict[str, Any]]] | None = None

    # ------------------------------------------------------------------
    # Raw file access
    # ------------------------------------------------------------------

    def _stat_key(self) -> _CacheKey | None:
        try:
            st = os.stat(self.tasks_file)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to stat {self.tasks_file}: {e}") from e
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _load_raw(self, use_cache: bool = True) -> list[dict[str, Any]]:
        """
        Load the raw task dicts, using the cache when the file is unchanged.

        Raises:
            PersistenceError: If the file cannot be read
            TasksFileCorruptedError: If the file is not valid JSON or has
                the wrong shape
        """
        key = self._stat_key()
        if key is None:
            # Missing file means an empty store; nothing is created on read.
            return []

        # Read the attribute once: writers swap or reset it without the lock
        cached = self._cache
        if use_cache and cached is not None and cached[0] == key:
            return cached[1]

        try:
            with open(self.tasks_file, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise TasksFileCorruptedError(f"Failed to parse {self.tasks_file}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read {self.tasks_file}: {e}") from e

        if not isinstance(data, dict):
            raise TasksFileCorruptedError(f"{self.tasks_file} must contain a JSON object")
        raw_tasks = data.get("tasks", [])
        if not isinstance(raw_tasks, list) or not all(isinstance(t, dict) for t in raw_tasks):
            raise TasksFileCorruptedError(f"'tasks' in {self.tasks_file} must be a list of objects")

        self._cache = (key, raw_tasks)
        logger.debug("Loaded %d tasks from %s", len(raw_tasks), self.tasks_file)
        return raw_tasks

    def _save_raw(self, raw_tasks: list[dict[str, Any]]) -> None:
        """
        Write the task dicts atomically.

        Uses a temporary file in the same directory and ``os.replace`` so
        the target is either the old or the new collection, never a mix.
        """
        try:
            self.tasks_file.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.tasks_file.parent, prefix=".tasks_", suffix=".json.tmp"
            )
        except OSError as e:
            raise PersistenceError(f"Failed to prepare write of {self.tasks_file}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"tasks": raw_tasks}, f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())

            # Atomic rename (replaces existing file)
            os.replace(temp_path, self.tasks_file)
        except OSError as e:
            _discard(temp_path)
            raise PersistenceError(f"Failed to write {self.tasks_file}: {e}") from e
        except Exception:
            _discard(temp_path)
            raise
        finally:
            # Invalidate cache
            self._cache = None

    def _parse_task(self, raw_task: dict[str, Any]) -> Task:
        try:
            return Task.model_validate(raw_task)
        except ValidationError as e:
            task_id = raw_task.get("id", "<unknown>")
            raise TasksFileCorruptedError(
                f"Invalid task {task_id} in {self.tasks_file}: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load_all(self, use_cache: bool = True) -> list[Task]:
        """
        Load every task, in persisted order.

        Each call returns fresh Task objects; mutating them does not touch
        the store until they are saved.

        Returns:
            The full ordered task collection (empty if the file is missing)
        """
        return [self._parse_task(raw) for raw in self._load_raw(use_cache=use_cache)]

    def save_all(self, tasks: Iterable[Task]) -> None:
        """
        Replace the entire persisted collection.

        Args:
            tasks: The new collection, in the order it should be stored
        """
        raw_tasks = [task.to_dict() for task in tasks]
        with self._exclusive():
            self._save_raw(raw_tasks)
        logger.info("Saved %d tasks to %s", len(raw_tasks), self.tasks_file)

    def get_by_id(self, task_id: str) -> Task:
        """
        Get a task by id.

        Raises:
            TaskNotFoundError: If no task has this id
        """
        for raw_task in self._load_raw():
            if raw_task.get("id") == task_id:
                return self._parse_task(raw_task)
        raise TaskNotFoundError(task_id)

    def list_tasks(self, status: TaskStatus | None = None) -> list[Task]:
        """List tasks, optionally filtered by status."""
        tasks = self.load_all()
        if status is None:
            return tasks
        return [t for t in tasks if t.status == status]

    def get_task_counts(self) -> TaskCounts:
        """Count tasks by status."""
        counts = TaskCounts()
        for task in self.load_all():
            counts.total += 1
            if task.status == TaskStatus.PENDING:
                counts.pending += 1
            elif task.status == TaskStatus.IN_PROGRESS:
                counts.in_progress += 1
            elif task.status == TaskStatus.COMPLETED:
                counts.completed += 1
        return counts

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """Exclusive inter-process lock on the sibling ``.lock`` file."""
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_file, "a+")
        except OSError as e:
            raise PersistenceError(f"Failed to open lock file {self.lock_file}: {e}") from e
        with handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """
        Hold the single-writer lock.

        Re-entrant within a thread: flock is taken by the outermost caller
        only, since a second flock on a new descriptor would block on the
        first.
        """
        with self._write_lock:
            if self._lock_depth:
                self._lock_depth += 1
                try:
                    yield
                finally:
                    self._lock_depth -= 1
                return

            with self._file_lock():
                self._lock_depth = 1
                try:
                    yield
                finally:
                    self._lock_depth = 0

    @contextmanager
    def transaction(self) -> Iterator[TaskTransaction]:
        """
        Run a load -> mutate -> save sequence as one critical section.

        The collection is re-read from disk (bypassing the cache) after the
        lock is taken. It is saved on a clean exit if the transaction was
        changed; if the block raises, nothing is written.

        Example:
            >>> with store.transaction() as txn:
            ...     task = txn.find(task_id)
            ...     txn.put(task.model_copy(update={"notes": "x"}))
        """
        with self._exclusive():
            txn = TaskTransaction(self.load_all(use_cache=False))
            yield txn
            if txn.changed:
                self._save_raw([task.to_dict() for task in txn.tasks])
                logger.info("Committed %d tasks to %s", len(txn.tasks), self.tasks_file)
