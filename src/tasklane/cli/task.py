"""
tasklane CLI - task commands.

Thin layer over TaskService. Every command writes JSON to stdout; errors
go to stderr with a non-zero exit code.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console

from tasklane.cli.errors import ExitCode, print_error, print_task_not_found_error
from tasklane.core.services.models import ErrorCode, TaskResult
from tasklane.core.services.tasks import TaskService
from tasklane.core.tasks.errors import PersistenceError, TaskValidationError
from tasklane.core.tasks.models import TaskContentUpdate, TaskStatus, UpdateMode
from tasklane.core.tasks.search import SearchMode

console = Console()
app = typer.Typer(help="Manage tasks")


def get_task_service() -> TaskService:
    """Build the service from the layered configuration of the current directory."""
    return TaskService.from_config()


def _emit(data: Any) -> None:
    console.print(
        json.dumps(data, indent=2, ensure_ascii=False),
        soft_wrap=True,
        markup=False,
        highlight=False,
        emoji=False,
    )


def _fail(problem: str, code: ExitCode = ExitCode.USER_ERROR, **kwargs: Any) -> NoReturn:
    print_error(problem, **kwargs)
    raise typer.Exit(code)


@contextmanager
def _service_errors() -> Iterator[None]:
    """Map exceptions the service lets through to exit codes."""
    try:
        yield
    except TaskValidationError as e:
        _fail(str(e))
    except PersistenceError as e:
        _fail(str(e), ExitCode.GENERAL_ERROR, reason="The task file could not be read or written")


def _finish(result: TaskResult, task_id: str) -> None:
    if result.success:
        _emit(result.model_dump(mode="json", by_alias=True))
        return
    if result.error_code == ErrorCode.NOT_FOUND:
        print_task_not_found_error(task_id)
        raise typer.Exit(ExitCode.USER_ERROR)
    _fail(result.message)


@app.command()
def split(
    mode: UpdateMode = typer.Argument(..., help="append, overwrite, selective or clearAllTasks"),
    file: Path = typer.Option(
        ...,
        "--file",
        "-f",
        help="JSON file holding an array of task specs ('-' reads stdin)",
    ),
    analysis: str | None = typer.Option(
        None,
        "--analysis",
        "-a",
        help="Free-text analysis stored alongside the batch result",
    ),
) -> None:
    """
    Submit a batch of tasks.

    Examples:
        tasklane split append --file tasks.json
        tasklane split clearAllTasks -f plan.json --analysis "v2 rewrite"
        cat tasks.json | tasklane split selective --file -
    """
    if str(file) == "-":
        raw = typer.get_text_stream("stdin").read()
    else:
        try:
            raw = file.read_text(encoding="utf-8")
        except OSError as e:
            _fail(f"Cannot read {file}: {e}")

    service = get_task_service()
    with _service_errors():
        result = service.reconcile_raw(mode, raw, analysis)

    if not result.success:
        _fail(result.message, reason=f"The {mode.value} batch was rejected; nothing was changed")
    _emit(result.model_dump(mode="json", by_alias=True, exclude={"all_tasks"}))


@app.command(name="list")
def list_tasks(
    status: TaskStatus | None = typer.Option(
        None,
        "--status",
        "-s",
        help="Only show tasks with this status",
    ),
) -> None:
    """
    List tasks in store order.

    Examples:
        tasklane list
        tasklane list --status pending
    """
    service = get_task_service()
    with _service_errors():
        tasks = service.list_tasks(status)
    _emit([t.to_dict() for t in tasks])


@app.command()
def show(task_id: str = typer.Argument(..., help="Task ID to display")) -> None:
    """
    Show one task.

    Examples:
        tasklane show 4f1c2b9e-...
    """
    service = get_task_service()
    with _service_errors():
        result = service.get_task(task_id)
    if not result.success or result.task is None:
        print_task_not_found_error(task_id)
        raise typer.Exit(ExitCode.USER_ERROR)
    _emit(result.task.to_dict())


@app.command()
def search(
    query: str = typer.Argument(..., help="Keywords, or an id (prefix) with --id"),
    by_id: bool = typer.Option(False, "--id", help="Match the query against task ids"),
    page: int = typer.Option(1, "--page", "-p", help="Page number (1-based)"),
    page_size: int | None = typer.Option(
        None, "--page-size", "-n", help="Results per page (default from config)"
    ),
    history: bool = typer.Option(
        False, "--history", help="Also search tasks preserved in backups"
    ),
) -> None:
    """
    Search tasks by keywords or id.

    Examples:
        tasklane search "login form"
        tasklane search 4f1c --id
        tasklane search api --page 2 --page-size 10 --history
    """
    service = get_task_service()
    mode = SearchMode.ID if by_id else SearchMode.KEYWORD
    with _service_errors():
        result = service.search(
            query, mode, page=page, page_size=page_size, include_history=history
        )
    _emit(result.model_dump(mode="json", by_alias=True))


@app.command()
def begin(task_id: str = typer.Argument(..., help="Task ID to start")) -> None:
    """
    Start work on a pending task.

    Examples:
        tasklane begin 4f1c2b9e-...
    """
    service = get_task_service()
    with _service_errors():
        result = service.begin(task_id)
    _finish(result, task_id)


@app.command()
def verify(
    task_id: str = typer.Argument(..., help="Task ID to verify"),
    score: int = typer.Option(..., "--score", help="Verification score (0-100)"),
    summary: str = typer.Option(
        ..., "--summary", help="Completion summary, or revision feedback below the threshold"
    ),
) -> None:
    """
    Score an in-progress task; a passing score completes it.

    Examples:
        tasklane verify 4f1c2b9e-... --score 90 --summary "Done, tests pass"
    """
    service = get_task_service()
    with _service_errors():
        result = service.verify(task_id, score, summary)
    _finish(result, task_id)


@app.command()
def update(
    task_id: str = typer.Argument(..., help="Task ID to update"),
    name: str | None = typer.Option(None, "--name", help="New task name"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    notes: str | None = typer.Option(None, "--notes", help="New notes"),
    guide: str | None = typer.Option(None, "--guide", help="New implementation guide"),
    criteria: str | None = typer.Option(None, "--criteria", help="New verification criteria"),
    depends_on: list[str] | None = typer.Option(
        None,
        "--depends-on",
        help="Dependency id or name (repeatable; replaces the current list)",
    ),
    files_json: str | None = typer.Option(
        None,
        "--files-json",
        help="Related files as a JSON array (replaces the current list)",
    ),
) -> None:
    """
    Edit the content of a task that is not completed.

    Examples:
        tasklane update 4f1c2b9e-... --description "Use the v2 endpoint"
        tasklane update 4f1c2b9e-... --depends-on "Set up schema" --depends-on 9a0b...
    """
    fields: dict[str, Any] = {
        "name": name,
        "description": description,
        "notes": notes,
        "implementation_guide": guide,
        "verification_criteria": criteria,
        "dependencies": depends_on or None,
    }
    if files_json is not None:
        try:
            fields["related_files"] = json.loads(files_json)
        except json.JSONDecodeError as e:
            _fail(f"--files-json is not valid JSON: {e}")

    try:
        content = TaskContentUpdate.model_validate(fields)
    except ValueError as e:
        _fail(f"Invalid update: {e}")

    service = get_task_service()
    with _service_errors():
        result = service.update_content(task_id, content)
    _finish(result, task_id)


@app.command()
def ready() -> None:
    """
    List pending tasks whose dependencies are all completed.

    Examples:
        tasklane ready
    """
    service = get_task_service()
    with _service_errors():
        tasks = service.ready_tasks()
    _emit([t.to_dict() for t in tasks])


@app.command()
def counts() -> None:
    """
    Show task counts by status.

    Examples:
        tasklane counts
    """
    service = get_task_service()
    with _service_errors():
        stats = service.get_task_counts()
    _emit(stats.model_dump())


@app.command()
def backups() -> None:
    """
    List backup snapshots, oldest first.

    Examples:
        tasklane backups
    """
    service = get_task_service()
    with _service_errors():
        handles = service.list_backups()
    _emit([h.model_dump(mode="json") for h in handles])
