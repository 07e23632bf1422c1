"""
Service layer data models.

Typed results returned by TaskService for single-task operations. Failures
that the caller is expected to handle (unknown id, illegal transition, bad
input) come back as results with ``success=False`` instead of exceptions.
"""

from enum import Enum

from pydantic import BaseModel, Field

from tasklane.core.tasks.models import Task


class ErrorCode(str, Enum):
    """Why a single-task operation failed."""

    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    INVALID_INPUT = "invalid_input"


class TaskResult(BaseModel):
    """Outcome of a single-task operation."""

    success: bool = Field(default=True, description="Whether the operation succeeded")
    task: Task | None = Field(default=None, description="The task after the operation")
    error_code: ErrorCode | None = Field(default=None, description="Failure category")
    message: str = Field(default="", description="Human-readable outcome")

    @classmethod
    def ok(cls, task: Task, message: str = "") -> "TaskResult":
        return cls(task=task, message=message)

    @classmethod
    def fail(cls, error_code: ErrorCode, message: str, task: Task | None = None) -> "TaskResult":
        return cls(success=False, task=task, error_code=error_code, message=message)


class VerifyResult(TaskResult):
    """Outcome of a verify call.

    ``completed`` is False both when the score was below the threshold
    (the task stays in progress) and when the call failed.
    """

    score: int | None = Field(default=None, description="Score that was submitted")
    summary: str | None = Field(default=None, description="Summary or revision feedback")
    completed: bool = Field(default=False, description="Whether the task was completed")
