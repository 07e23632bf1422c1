"""
Task status state machine.

    pending --begin--> in_progress --verify(score >= 80)--> completed

A verify call below the threshold keeps the task in progress (the revision
loop). Completed is terminal: it cannot be left, and a completed task's
content cannot be edited.

All functions here are pure: they take a Task and return a new one, leaving
persistence to the caller.
"""

from dataclasses import dataclass
from datetime import datetime

from .errors import StateError, TaskValidationError
from .models import Task, TaskStatus

VERIFY_PASS_THRESHOLD = 80

VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED},
    TaskStatus.COMPLETED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {TaskStatus.COMPLETED}


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Return True if moving from ``from_status`` to ``to_status`` is allowed."""
    return to_status in VALID_TRANSITIONS.get(from_status, set())


@dataclass(frozen=True)
class VerifyOutcome:
    """Result of a verify call.

    ``task`` is the task after the call; it is the unchanged input when the
    score was below the threshold.
    """

    task: Task
    score: int
    summary: str
    completed: bool


def begin(task: Task) -> Task:
    """
    Start work on a pending task.

    Raises:
        StateError: If the task is not pending
    """
    if not validate_transition(task.status, TaskStatus.IN_PROGRESS):
        raise StateError(
            f"Task '{task.name}' ({task.id}) is {task.status.value}; "
            "only pending tasks can be started"
        )
    return task.model_copy(
        update={"status": TaskStatus.IN_PROGRESS, "updated_at": datetime.now()}
    )


def verify(
    task: Task,
    score: int,
    summary: str,
    threshold: int = VERIFY_PASS_THRESHOLD,
) -> VerifyOutcome:
    """
    Score an in-progress task.

    At or above ``threshold`` the task is completed and ``summary`` becomes
    its completion summary. Below it the task is left as it is and
    ``summary`` is only feedback for the next revision.

    Raises:
        StateError: If the task is not in progress
        TaskValidationError: If the task would complete with an empty summary
    """
    if task.status != TaskStatus.IN_PROGRESS:
        raise StateError(
            f"Task '{task.name}' ({task.id}) is {task.status.value}; "
            "only in-progress tasks can be verified"
        )

    if score < threshold:
        return VerifyOutcome(task=task, score=score, summary=summary, completed=False)
    if not summary.strip():
        raise TaskValidationError("A completion summary is required to complete a task")

    now = datetime.now()
    completed = task.model_copy(
        update={
            "status": TaskStatus.COMPLETED,
            "summary": summary,
            "completed_at": now,
            "updated_at": now,
        }
    )
    return VerifyOutcome(task=completed, score=score, summary=summary, completed=True)


def ensure_editable(task: Task) -> None:
    """
    Refuse content edits on completed tasks.

    Raises:
        StateError: If the task is completed
    """
    if task.status in TERMINAL_STATES:
        raise StateError(f"Task '{task.name}' ({task.id}) is completed and cannot be edited")
