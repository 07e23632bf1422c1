"""
Pytest configuration and shared fixtures.

Provides temp-directory stores, backup managers, a wired TaskService and
factories for tasks and task specs used across the test suite.
"""

import uuid
from collections.abc import Callable
from typing import Any

import pytest

from tasklane.core.config import clear_cache
from tasklane.core.services.tasks import TaskService
from tasklane.core.tasks.backup import BackupManager
from tasklane.core.tasks.models import Task, TaskSpec, TaskStatus
from tasklane.core.tasks.reconcile import BatchReconciler
from tasklane.core.tasks.store import JsonTaskStore

# ==============================================================================
# Environment isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """
    Keep tests away from the real user config and environment.

    Points XDG_CONFIG_HOME into the temp dir, drops TASKLANE_* variables
    and clears the config cache before and after each test.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "TASKLANE_DATA_DIR",
        "TASKLANE_TASKS_FILE",
        "TASKLANE_BACKUP_DIR",
        "TASKLANE_VERIFY_THRESHOLD",
        "TASKLANE_MAX_PAGE_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def data_dir(tmp_path):
    """Directory holding tasks.json and the backup directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


# ==============================================================================
# Component Fixtures
# ==============================================================================


@pytest.fixture
def store(data_dir) -> JsonTaskStore:
    """A JSON task store on an empty temp file."""
    return JsonTaskStore(data_dir / "tasks.json")


@pytest.fixture
def backups(data_dir) -> BackupManager:
    """A backup manager writing under the temp data dir."""
    return BackupManager(data_dir / "memory")


@pytest.fixture
def reconciler(store, backups) -> BatchReconciler:
    return BatchReconciler(store, backups)


@pytest.fixture
def service(store, backups) -> TaskService:
    """TaskService wired to the temp store and backups."""
    return TaskService(store, backups)


# ==============================================================================
# Sample Data Fixtures
# ==============================================================================


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """
    Factory for stored tasks.

    Completed tasks get a summary automatically so they satisfy the
    summary/status invariant.
    """

    def _make(name: str, status: TaskStatus = TaskStatus.PENDING, **kwargs: Any) -> Task:
        if status == TaskStatus.COMPLETED:
            kwargs.setdefault("summary", f"{name} done")
        kwargs.setdefault("id", str(uuid.uuid4()))
        kwargs.setdefault("description", f"Description of {name}")
        return Task(name=name, status=status, **kwargs)

    return _make


@pytest.fixture
def make_spec() -> Callable[..., TaskSpec]:
    """Factory for batch specs: ``make_spec("B", "A")`` depends on A."""

    def _make(name: str, *dependencies: Any, **kwargs: Any) -> TaskSpec:
        kwargs.setdefault("description", f"Description of {name}")
        if dependencies:
            kwargs["dependencies"] = list(dependencies)
        return TaskSpec(name=name, **kwargs)

    return _make
