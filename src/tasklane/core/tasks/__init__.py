"""
Task store and batch reconciliation.

This package owns the canonical task collection: the data models, the JSON
file store, dependency resolution, backups, the status state machine,
batch reconciliation and search.
"""

from .backup import BackupManager
from .errors import (
    BackupError,
    DependencyError,
    PersistenceError,
    StateError,
    TaskLaneError,
    TaskNotFoundError,
    TasksFileCorruptedError,
    TaskValidationError,
)
from .graph import DependencyGraph
from .models import (
    BackupHandle,
    ByExactId,
    ByName,
    RelatedFile,
    RelatedFileType,
    Task,
    TaskContentUpdate,
    TaskCounts,
    TaskSpec,
    TaskStatus,
    UpdateMode,
)
from .parser import load_task_specs, parse_task_specs
from .reconcile import BatchReconciler, BatchResult
from .resolver import DependencyResolver
from .search import Pagination, SearchEngine, SearchMode, SearchPage
from .store import JsonTaskStore

__all__ = [
    # Models
    "Task",
    "TaskSpec",
    "TaskContentUpdate",
    "TaskStatus",
    "TaskCounts",
    "RelatedFile",
    "RelatedFileType",
    "UpdateMode",
    "ByExactId",
    "ByName",
    "BackupHandle",
    # Errors
    "TaskLaneError",
    "TaskValidationError",
    "DependencyError",
    "TaskNotFoundError",
    "StateError",
    "PersistenceError",
    "TasksFileCorruptedError",
    "BackupError",
    # Components
    "JsonTaskStore",
    "DependencyResolver",
    "BackupManager",
    "BatchReconciler",
    "BatchResult",
    "SearchEngine",
    "SearchMode",
    "SearchPage",
    "Pagination",
    "DependencyGraph",
    "parse_task_specs",
    "load_task_specs",
]
