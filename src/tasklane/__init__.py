"""
tasklane - dependency-aware task tracking.

A task store for agent workflows: batches of structured tasks are
reconciled into a JSON-backed collection, dependencies are resolved by id
or name, and tasks move through pending -> in_progress -> completed behind
a verification gate.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from tasklane.core.config.models import TasklaneConfig
from tasklane.core.tasks.models import Task, TaskSpec, TaskStatus, UpdateMode

__all__ = ["TasklaneConfig", "Task", "TaskSpec", "TaskStatus", "UpdateMode", "__version__"]
