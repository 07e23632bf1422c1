"""
Task data models for tasklane.

Defines the canonical Task record, the RelatedFile attachment, the incoming
TaskSpec used by batch submissions, and the typed dependency references
(ByExactId / ByName) that are resolved to canonical ids before a task is
persisted.

Persisted and wire forms use camelCase aliases (``implementationGuide``,
``relatedFiles``, ``createdAt``...); Python code uses snake_case attributes.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


class TaskStatus(str, Enum):
    """Task status values.

    Status only moves forward: pending -> in_progress -> completed.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RelatedFileType(str, Enum):
    """How a file relates to a task."""

    TO_MODIFY = "TO_MODIFY"
    REFERENCE = "REFERENCE"
    CREATE = "CREATE"
    DEPENDENCY = "DEPENDENCY"
    OTHER = "OTHER"


class UpdateMode(str, Enum):
    """Batch reconciliation modes.

    APPEND: keep every existing task, add the batch as new tasks.
    OVERWRITE: drop unfinished tasks, keep completed ones, add the batch.
    SELECTIVE: update existing tasks matched by name, add the rest.
    CLEAR_ALL_TASKS: back up and drop everything, then add the batch.
    """

    APPEND = "append"
    OVERWRITE = "overwrite"
    SELECTIVE = "selective"
    CLEAR_ALL_TASKS = "clearAllTasks"

    @property
    def is_destructive(self) -> bool:
        """True for the mode that discards completed tasks."""
        return self is UpdateMode.CLEAR_ALL_TASKS


class RelatedFile(BaseModel):
    """
    A file associated with a task.

    The line range is optional, but ``line_start`` and ``line_end`` must be
    given together and ``line_start`` may not exceed ``line_end``.

    Example:
        >>> RelatedFile(path="src/app.py", type="TO_MODIFY",
        ...             description="entry point", lineStart=5, lineEnd=10)
        RelatedFile(path='src/app.py', ...)
    """

    path: str = Field(..., min_length=1, description="File path, relative or absolute")
    type: RelatedFileType = Field(..., description="Relationship between file and task")
    description: str = Field(..., min_length=1, description="What the file is used for")
    line_start: int | None = Field(
        default=None, gt=0, description="First line of the relevant block", alias="lineStart"
    )
    line_end: int | None = Field(
        default=None, gt=0, description="Last line of the relevant block", alias="lineEnd"
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_line_range(self) -> "RelatedFile":
        """Reject half-specified or inverted line ranges."""
        if (self.line_start is None) != (self.line_end is None):
            raise ValueError("lineStart and lineEnd must be set together")
        if (
            self.line_start is not None
            and self.line_end is not None
            and self.line_start > self.line_end
        ):
            raise ValueError(
                f"lineStart ({self.line_start}) must not be greater than lineEnd ({self.line_end})"
            )
        return self


# ==============================================================================
# Dependency references
# ==============================================================================


class ByExactId(BaseModel):
    """A dependency reference that must match a task id exactly."""

    task_id: str = Field(..., min_length=1, alias="taskId")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def __str__(self) -> str:
        return self.task_id


class ByName(BaseModel):
    """A dependency reference that matches a task by its exact name."""

    name: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.name


DependencyRef = Union[ByExactId, ByName]

# What callers may submit: raw strings are classified during resolution.
RawDependency = Union[str, ByExactId, ByName]


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            out.append(value)
    return out


# ==============================================================================
# Task
# ==============================================================================


class Task(BaseModel):
    """
    A tracked unit of work.

    Tasks are created by the batch reconciler and only ever move forward
    through their status lifecycle. ``dependencies`` always holds resolved
    task ids, never names.

    Example:
        >>> task = Task(id="4f1c...", name="Set up schema",
        ...             description="Create the tables", implementationGuide="...")
        >>> task.status
        <TaskStatus.PENDING: 'pending'>
    """

    id: str = Field(..., min_length=1, description="Unique task identifier (UUID4)")
    name: str = Field(..., min_length=1, description="Task name")
    description: str = Field(default="", description="Detailed task description")
    notes: str | None = Field(default=None, description="Supplementary notes")
    implementation_guide: str = Field(
        default="", description="How to implement the task", alias="implementationGuide"
    )
    verification_criteria: str | None = Field(
        default=None,
        description="How completion is checked",
        alias="verificationCriteria",
    )

    dependencies: list[str] = Field(
        default_factory=list, description="Ids of prerequisite tasks, in declaration order"
    )
    related_files: list[RelatedFile] = Field(
        default_factory=list, description="Files related to the task", alias="relatedFiles"
    )

    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current task status")
    summary: str | None = Field(default=None, description="Completion summary")

    created_at: datetime = Field(default_factory=datetime.now, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.now, alias="updatedAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("dependencies")
    @classmethod
    def dedupe_dependencies(cls, v: list[str]) -> list[str]:
        """Dependencies form an ordered set."""
        return _dedupe(v)

    @model_validator(mode="after")
    def check_summary_matches_status(self) -> "Task":
        """A summary exists exactly when the task is completed."""
        if self.status == TaskStatus.COMPLETED and not self.summary:
            raise ValueError("completed tasks must carry a summary")
        if self.status != TaskStatus.COMPLETED and self.summary:
            raise ValueError("only completed tasks may carry a summary")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_completed(self) -> bool:
        """True once the task has passed verification."""
        return self.status == TaskStatus.COMPLETED

    def to_dict(self) -> dict:
        """Serialize to the persisted (camelCase, JSON-safe) form."""
        return self.model_dump(by_alias=True, mode="json", exclude={"is_completed"})


# ==============================================================================
# Incoming data
# ==============================================================================


class TaskSpec(BaseModel):
    """
    One task as submitted in a batch.

    Dependencies may name a task or give its id; they are resolved to ids
    by the DependencyResolver before anything is written.
    """

    name: str = Field(..., min_length=1, description="Task name, unique within the batch")
    description: str = Field(..., description="Detailed task description")
    implementation_guide: str = Field(
        default="", description="How to implement the task", alias="implementationGuide"
    )
    notes: str | None = Field(default=None, description="Supplementary notes")
    dependencies: list[RawDependency] = Field(
        default_factory=list, description="Prerequisite task ids or names"
    )
    related_files: list[RelatedFile] = Field(default_factory=list, alias="relatedFiles")
    verification_criteria: str | None = Field(default=None, alias="verificationCriteria")

    model_config = ConfigDict(populate_by_name=True)


class TaskContentUpdate(BaseModel):
    """
    A partial update of a task's content.

    Fields left as None are not touched. Status and summary cannot be set
    here; they belong to the status state machine.
    """

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    notes: str | None = None
    dependencies: list[RawDependency] | None = None
    related_files: list[RelatedFile] | None = Field(default=None, alias="relatedFiles")
    implementation_guide: str | None = Field(default=None, alias="implementationGuide")
    verification_criteria: str | None = Field(default=None, alias="verificationCriteria")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_empty(self) -> bool:
        """True when no field was provided."""
        return all(getattr(self, name) is None for name in type(self).model_fields)


# ==============================================================================
# Aggregates
# ==============================================================================


class TaskCounts(BaseModel):
    """
    Task count statistics.

    Used for progress reporting.
    """

    total: int = Field(default=0, description="Total number of tasks")
    pending: int = Field(default=0, description="Number of pending tasks")
    in_progress: int = Field(default=0, description="Number of in-progress tasks")
    completed: int = Field(default=0, description="Number of completed tasks")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining(self) -> int:
        """Number of tasks not yet completed."""
        return self.pending + self.in_progress

    @computed_field  # type: ignore[prop-decorator]
    @property
    def completion_percentage(self) -> float:
        """Percentage of tasks completed (0-100)."""
        if self.total == 0:
            return 0.0
        return (self.completed / self.total) * 100


class BackupHandle(BaseModel):
    """Identifies a backup snapshot taken before a full reset."""

    name: str = Field(..., description="Backup file name, derived from its creation time")
    path: Path = Field(..., description="Where the snapshot was written")
    created_at: datetime = Field(..., description="When the snapshot was taken")
    task_count: int = Field(default=0, ge=0, description="Number of tasks in the snapshot")
