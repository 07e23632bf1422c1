"""
Parse raw JSON task batches.

Batches arrive as a JSON array of task objects (camelCase keys, as in the
persisted form). This module turns that text into validated TaskSpec
objects, reporting malformed input as TaskValidationError.
"""

import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from .errors import TaskValidationError
from .models import TaskSpec

_SPEC_LIST = TypeAdapter(list[TaskSpec])


def parse_task_specs(raw: str) -> list[TaskSpec]:
    """
    Parse a JSON array of task specs.

    A top-level object with a ``tasks`` array is accepted too, so a saved
    ``tasks.json`` can be fed back in.

    Args:
        raw: JSON text

    Returns:
        The specs in input order (at least one)

    Raises:
        TaskValidationError: If the text is not valid JSON, does not match
            the task spec shape, or holds no tasks

    Example:
        >>> specs = parse_task_specs('[{"name": "A", "description": "first"}]')
        >>> specs[0].name
        'A'
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TaskValidationError(f"Task batch is not valid JSON: {e}") from e

    if isinstance(data, dict) and "tasks" in data:
        data = data["tasks"]
    if not isinstance(data, list):
        raise TaskValidationError("Task batch must be a JSON array of task objects")

    try:
        specs = _SPEC_LIST.validate_python(data)
    except ValidationError as e:
        raise TaskValidationError(f"Invalid task batch: {e}") from e

    if not specs:
        raise TaskValidationError("Task batch must contain at least one task")
    return specs


def load_task_specs(path: Path) -> list[TaskSpec]:
    """Read and parse a batch file."""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise TaskValidationError(f"Cannot read task batch {path}: {e}") from e
    return parse_task_specs(raw)
