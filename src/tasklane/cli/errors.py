"""
Standardized error handling and exit codes for the tasklane CLI.

Errors go to stderr so that stdout only ever carries JSON.
"""

from enum import IntEnum

from rich.console import Console
from rich.markup import escape

err_console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for tasklane CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Storage or unexpected failure."""

    USER_ERROR = 2
    """Bad input, unknown task, or illegal state transition."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Task not found: 4f1c",
        ...     solution="tasklane search 4f1c --id",
        ... )
    """
    err_console.print(f"[red]Error:[/red] {escape(problem)}", highlight=False)

    if reason:
        err_console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        err_console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}")


def print_task_not_found_error(task_id: str) -> None:
    """Print error when a task id does not exist."""
    print_error(
        f"Task not found: {task_id}",
        solution=f"tasklane search {task_id} --id",
    )
