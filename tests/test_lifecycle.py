"""
Tests for the task status state machine.

Tests legal transitions, the verification gate and the edit lock on
completed tasks.
"""

import pytest

from tasklane.core.tasks import lifecycle
from tasklane.core.tasks.errors import StateError, TaskValidationError
from tasklane.core.tasks.models import TaskStatus


class TestTransitions:
    """Test the transition table."""

    @pytest.mark.parametrize(
        "from_status,to_status,allowed",
        [
            (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, True),
            (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, True),
            (TaskStatus.PENDING, TaskStatus.COMPLETED, False),
            (TaskStatus.IN_PROGRESS, TaskStatus.PENDING, False),
            (TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS, False),
            (TaskStatus.COMPLETED, TaskStatus.PENDING, False),
        ],
    )
    def test_validate_transition(self, from_status, to_status, allowed):
        assert lifecycle.validate_transition(from_status, to_status) is allowed


class TestBegin:
    """Test starting work on a task."""

    def test_pending_becomes_in_progress(self, make_task):
        task = make_task("A")
        started = lifecycle.begin(task)
        assert started.status == TaskStatus.IN_PROGRESS
        assert started.id == task.id
        assert started.updated_at >= task.updated_at
        assert task.status == TaskStatus.PENDING

    @pytest.mark.parametrize("status", [TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED])
    def test_only_pending_can_begin(self, make_task, status):
        with pytest.raises(StateError, match="only pending"):
            lifecycle.begin(make_task("A", status=status))


class TestVerify:
    """Test the verification gate."""

    def test_below_threshold_stays_in_progress(self, make_task):
        """A score of 79 leaves the task in progress with no summary."""
        task = make_task("A", status=TaskStatus.IN_PROGRESS)
        outcome = lifecycle.verify(task, 79, "Missing error handling")

        assert outcome.completed is False
        assert outcome.task is task
        assert outcome.task.status == TaskStatus.IN_PROGRESS
        assert outcome.task.summary is None
        assert outcome.summary == "Missing error handling"

    def test_at_threshold_completes(self, make_task):
        """A score of 80 completes the task and stores the summary."""
        task = make_task("A", status=TaskStatus.IN_PROGRESS)
        outcome = lifecycle.verify(task, 80, "Implemented and tested")

        assert outcome.completed is True
        assert outcome.task.status == TaskStatus.COMPLETED
        assert outcome.task.summary == "Implemented and tested"
        assert outcome.task.completed_at is not None

    def test_custom_threshold(self, make_task):
        task = make_task("A", status=TaskStatus.IN_PROGRESS)
        assert lifecycle.verify(task, 85, "ok", threshold=90).completed is False
        assert lifecycle.verify(task, 90, "ok", threshold=90).completed is True

    @pytest.mark.parametrize("status", [TaskStatus.PENDING, TaskStatus.COMPLETED])
    def test_only_in_progress_can_be_verified(self, make_task, status):
        """Verifying a pending or completed task fails and changes nothing."""
        task = make_task("A", status=status)
        before = task.to_dict()

        with pytest.raises(StateError, match="only in-progress"):
            lifecycle.verify(task, 100, "done")

        assert task.to_dict() == before

    def test_completion_needs_summary(self, make_task):
        task = make_task("A", status=TaskStatus.IN_PROGRESS)
        with pytest.raises(TaskValidationError):
            lifecycle.verify(task, 95, "   ")


class TestEnsureEditable:
    """Test the edit lock."""

    @pytest.mark.parametrize("status", [TaskStatus.PENDING, TaskStatus.IN_PROGRESS])
    def test_open_tasks_are_editable(self, make_task, status):
        lifecycle.ensure_editable(make_task("A", status=status))

    def test_completed_is_locked(self, make_task):
        with pytest.raises(StateError, match="cannot be edited"):
            lifecycle.ensure_editable(make_task("A", status=TaskStatus.COMPLETED))
