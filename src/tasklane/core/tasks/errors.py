"""
Typed exceptions for the task store and reconciliation engine.

Batch-level errors (TaskValidationError, DependencyError and BackupError)
abort the whole batch with the store unchanged. Single-task errors
(TaskNotFoundError, StateError) are turned into explicit failure results by
the service layer.
"""


class TaskLaneError(Exception):
    """Base exception for all tasklane core errors."""


class TaskValidationError(TaskLaneError):
    """Raised when a batch or update violates a structural invariant.

    Examples: duplicate names inside one batch, a malformed line range on a
    related file, an empty content update.
    """


class DependencyError(TaskLaneError):
    """Raised when a dependency reference cannot be resolved to a task."""

    def __init__(self, task_name: str, reference: str) -> None:
        self.task_name = task_name
        self.reference = reference
        super().__init__(
            f"Task '{task_name}' depends on '{reference}', "
            "which matches no existing task and no task in this batch"
        )


class TaskNotFoundError(TaskLaneError):
    """Raised when a task id does not exist in the store."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class StateError(TaskLaneError):
    """Raised on an illegal status transition or an edit of a completed task."""


class PersistenceError(TaskLaneError):
    """Raised when the tasks file or a backup cannot be read or written."""


class TasksFileCorruptedError(PersistenceError):
    """Raised when the tasks file exists but is malformed."""


class BackupError(PersistenceError):
    """Raised when a backup snapshot cannot be written."""
