"""
Configuration data models for tasklane.

These models define the structure of .tasklane.json and
~/.config/tasklane/config.json files, with validation via Pydantic.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StorageConfig(BaseModel):
    """
    Where the task collection and its backups live.

    Relative paths are resolved against the project directory. When
    ``tasks_file`` or ``backup_dir`` is unset it is derived from
    ``data_dir``.
    """
    data_dir: Path = Field(
        default=Path(".tasklane"),
        description="Directory holding tasks.json and the backup directory"
    )
    tasks_file: Optional[Path] = Field(
        default=None,
        description="Task collection file (defaults to <data_dir>/tasks.json)"
    )
    backup_dir: Optional[Path] = Field(
        default=None,
        description="Backup snapshot directory (defaults to <data_dir>/memory)"
    )

    def resolve_tasks_file(self, project_dir: Path) -> Path:
        """Absolute path of the task collection file."""
        path = self.tasks_file or (self.data_dir / "tasks.json")
        return path if path.is_absolute() else project_dir / path

    def resolve_backup_dir(self, project_dir: Path) -> Path:
        """Absolute path of the backup directory."""
        path = self.backup_dir or (self.data_dir / "memory")
        return path if path.is_absolute() else project_dir / path


class SearchConfig(BaseModel):
    """
    Search pagination limits.
    """
    default_page_size: int = Field(
        default=5,
        ge=1,
        description="Page size used when the caller does not give one"
    )
    max_page_size: int = Field(
        default=20,
        ge=1,
        description="Largest page size a caller may request"
    )

    @model_validator(mode="after")
    def clamp_default_page_size(self) -> "SearchConfig":
        """Keep the default page size within the maximum."""
        if self.default_page_size > self.max_page_size:
            self.default_page_size = self.max_page_size
        return self


class VerificationConfig(BaseModel):
    """
    Verification gate for completing tasks.
    """
    pass_threshold: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Minimum verification score that completes a task"
    )


class TasklaneConfig(BaseModel):
    """
    Top-level tasklane configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = TasklaneConfig(
        ...     storage=StorageConfig(data_dir=Path("data")),
        ...     verification=VerificationConfig(pass_threshold=90),
        ... )
        >>> config.search.max_page_size
        20
    """
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Task file and backup locations"
    )
    search: SearchConfig = Field(
        default_factory=SearchConfig,
        description="Search pagination limits"
    )
    verification: VerificationConfig = Field(
        default_factory=VerificationConfig,
        description="Verification gate"
    )

    model_config = ConfigDict(
        extra="allow",  # Unknown keys are kept for forward compatibility
        validate_assignment=True,
    )
