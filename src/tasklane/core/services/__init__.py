"""
Service layer for tasklane.

Services compose the core task components into one API surface. Interfaces
(the CLI, or an embedding agent workflow) call service methods instead of
reaching into core packages directly.

- Methods accept typed inputs and return typed outputs.
- No Rich, no sys.exit, no print statements; presentation is the caller's job.
- Services are created via factory methods that accept configuration.
"""

from tasklane.core.services.models import ErrorCode, TaskResult, VerifyResult
from tasklane.core.services.tasks import TaskService

__all__ = [
    "TaskService",
    "TaskResult",
    "VerifyResult",
    "ErrorCode",
]
