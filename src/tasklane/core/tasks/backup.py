"""
Backup snapshots of the task collection.

A snapshot is taken before ``clearAllTasks`` discards the store. Each one is
an immutable JSON file named after its creation time
(``tasks_memory_<timestamp>.json``) holding the full collection as it was.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .errors import BackupError, PersistenceError, TasksFileCorruptedError
from .models import BackupHandle, Task

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "tasks_memory_"
BACKUP_SUFFIX = ".json"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%f"


class BackupManager:
    """
    Writes and reads backup snapshots in a single directory.

    Example:
        >>> backups = BackupManager(Path("data/memory"))
        >>> handle = backups.snapshot(store.load_all())
        >>> handle.name
        'tasks_memory_2026-10-18T09-30-00-123456.json'
    """

    def __init__(self, backup_dir: Path) -> None:
        self.backup_dir = Path(backup_dir)

    def _next_path(self, created_at: datetime) -> Path:
        stem = f"{BACKUP_PREFIX}{created_at.strftime(TIMESTAMP_FORMAT)}"
        path = self.backup_dir / f"{stem}{BACKUP_SUFFIX}"
        counter = 1
        while path.exists():
            path = self.backup_dir / f"{stem}-{counter}{BACKUP_SUFFIX}"
            counter += 1
        return path

    def snapshot(self, tasks: list[Task]) -> BackupHandle:
        """
        Write a full copy of ``tasks``.

        The snapshot is written to a temporary file and renamed into place,
        so a failed snapshot leaves nothing behind.

        Args:
            tasks: The complete collection to preserve

        Returns:
            Handle naming the new snapshot

        Raises:
            BackupError: If the snapshot cannot be written
        """
        created_at = datetime.now()
        payload = {
            "createdAt": created_at.isoformat(),
            "tasks": [task.to_dict() for task in tasks],
        }

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            target = self._next_path(created_at)
            fd, temp_path = tempfile.mkstemp(
                dir=self.backup_dir, prefix=".backup_", suffix=".json.tmp"
            )
        except OSError as e:
            raise BackupError(f"Failed to prepare backup in {self.backup_dir}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(temp_path, target)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise BackupError(f"Failed to write backup {target}: {e}") from e

        logger.info("Backed up %d tasks to %s", len(tasks), target)
        return BackupHandle(
            name=target.name, path=target, created_at=created_at, task_count=len(tasks)
        )

    def list_backups(self) -> list[BackupHandle]:
        """
        List snapshots, oldest first.
        """
        if not self.backup_dir.is_dir():
            return []

        handles: list[BackupHandle] = []
        for path in sorted(self.backup_dir.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}")):
            data = self._read(path)
            created_raw = data.get("createdAt")
            try:
                created_at = (
                    datetime.fromisoformat(created_raw)
                    if isinstance(created_raw, str)
                    else datetime.fromtimestamp(path.stat().st_mtime)
                )
            except (ValueError, OSError):
                created_at = datetime.fromtimestamp(0)
            handles.append(
                BackupHandle(
                    name=path.name,
                    path=path,
                    created_at=created_at,
                    task_count=len(data.get("tasks", [])),
                )
            )
        # Collision suffixes ("-1") must sort after the unsuffixed name
        handles.sort(key=lambda h: (h.created_at, len(h.name), h.name))
        return handles

    def load_backup(self, name: str) -> list[Task]:
        """
        Read the tasks stored in a snapshot.

        Args:
            name: Snapshot file name as returned in a BackupHandle

        Raises:
            PersistenceError: If the snapshot is missing or unreadable
        """
        path = self.backup_dir / Path(name).name
        data = self._read(path)
        try:
            return [Task.model_validate(raw) for raw in data.get("tasks", [])]
        except ValidationError as e:
            raise TasksFileCorruptedError(f"Invalid task in backup {path.name}: {e}") from e

    def _read(self, path: Path) -> dict:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise TasksFileCorruptedError(f"Failed to parse backup {path}: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to read backup {path}: {e}") from e
        if not isinstance(data, dict):
            raise TasksFileCorruptedError(f"Backup {path} must contain a JSON object")
        return data
