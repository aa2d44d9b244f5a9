"""
Tests for the daily task board (``siteflow_modules.tasks.service``).
"""

from datetime import date
from uuid import uuid4

import pytest

from siteflow_kernel.exceptions import NotFoundError, ValidationError
from siteflow_kernel.services.change_feed import ChangeEvent
from siteflow_modules.tasks.models import TaskStatus

DAY = 24 * 60 * 60


class TestAdd:

    def test_new_task_is_pending_and_trimmed(self, task_board, deterministic_clock):
        task = task_board.add("u-meena", "  Vendor payment follow-up ")

        assert task.description == "Vendor payment follow-up"
        assert task.status == TaskStatus.PENDING
        assert task.user_id == "u-meena"
        assert task.created_at == deterministic_clock.now()
        assert task_board.get(task.id) == task

    @pytest.mark.parametrize(
        "user_id, description, fields",
        [
            ("u-meena", "   ", ["description"]),
            ("", "Grocery purchase", ["user_id"]),
            (" ", "", ["user_id", "description"]),
        ],
    )
    def test_blank_input_rejected(self, task_board, user_id, description, fields):
        with pytest.raises(ValidationError) as exc_info:
            task_board.add(user_id, description)
        assert list(exc_info.value.fields) == fields
        assert task_board.agenda("u-meena").tasks == ()

    def test_add_publishes_insert(self, task_board, change_feed):
        notices = []
        change_feed.subscribe(notices.append, entity_type="DailyTask")
        task = task_board.add("u-meena", "Call transporter")
        assert [(n.event, n.entity_id, n.status) for n in notices] == [
            (ChangeEvent.INSERT, task.id, "pending"),
        ]


class TestSetStatus:

    def test_toggle_completed_and_back(self, task_board):
        task = task_board.add("u-meena", "File GST return")

        done = task_board.set_status(task.id, TaskStatus.COMPLETED)
        assert done.status == TaskStatus.COMPLETED
        assert task_board.get(task.id).status == TaskStatus.COMPLETED

        reopened = task_board.set_status(task.id, "pending")
        assert reopened.status == TaskStatus.PENDING

    def test_unknown_status_rejected(self, task_board):
        task = task_board.add("u-meena", "File GST return")
        with pytest.raises(ValidationError) as exc_info:
            task_board.set_status(task.id, "archived")
        assert exc_info.value.fields == ("status",)
        assert task_board.get(task.id).status == TaskStatus.PENDING

    def test_unknown_task(self, task_board):
        with pytest.raises(NotFoundError):
            task_board.set_status(uuid4(), TaskStatus.COMPLETED)


class TestDelete:

    def test_delete_removes_task(self, task_board, change_feed):
        task = task_board.add("u-meena", "Courier drawings")
        notices = []
        change_feed.subscribe(notices.append, entity_type="DailyTask")

        task_board.delete(task.id)

        with pytest.raises(NotFoundError):
            task_board.get(task.id)
        assert task_board.agenda("u-meena").tasks == ()
        assert [(n.event, n.entity_id) for n in notices] == [(ChangeEvent.DELETE, task.id)]

    def test_delete_unknown_task(self, task_board):
        with pytest.raises(NotFoundError):
            task_board.delete(uuid4())

    def test_delete_is_logged(self, task_board, captured_logs):
        task = task_board.add("u-meena", "Courier drawings")
        task_board.delete(task.id)
        deleted = [r for r in captured_logs() if r["message"] == "task_deleted"]
        assert deleted[0]["task_id"] == str(task.id)


class TestAgenda:

    def test_newest_first_and_scoped_to_user(self, task_board, deterministic_clock):
        first = task_board.add("u-meena", "Vendor payment")
        deterministic_clock.advance(60)
        second = task_board.add("u-meena", "Grocery purchase")
        task_board.add("u-ravi", "Someone else's task")

        agenda = task_board.agenda("u-meena")
        assert [t.id for t in agenda.tasks] == [second.id, first.id]
        assert agenda.user_id == "u-meena"

    def test_pending_carries_forward_completed_drops_off(self, task_board, deterministic_clock):
        carried = task_board.add("u-meena", "Chase pending invoice")
        finished = task_board.add("u-meena", "Book site visit")
        task_board.set_status(finished.id, TaskStatus.COMPLETED)

        deterministic_clock.advance(DAY)
        today = task_board.add("u-meena", "Approve timesheets")
        done_today = task_board.add("u-meena", "Print drawings")
        task_board.set_status(done_today.id, TaskStatus.COMPLETED)

        agenda = task_board.agenda("u-meena")
        assert {t.id for t in agenda.tasks} == {carried.id, today.id, done_today.id}
        assert agenda.pending_count == 2
        assert agenda.finished_count == 1

    def test_explicit_day(self, task_board, deterministic_clock):
        finished = task_board.add("u-meena", "Book site visit")
        task_board.set_status(finished.id, TaskStatus.COMPLETED)
        deterministic_clock.advance(DAY)

        assert task_board.agenda("u-meena").tasks == ()
        assert [t.id for t in task_board.agenda("u-meena", day=date(2024, 1, 1)).tasks] == [
            finished.id
        ]

    def test_empty_board(self, task_board):
        agenda = task_board.agenda("u-nobody")
        assert agenda.tasks == ()
        assert agenda.pending_count == 0
        assert agenda.finished_count == 0


def test_tasks_have_no_write_guard(session, task_board):
    from siteflow_kernel.db.guards import guarded_models
    from siteflow_modules.tasks.orm import DailyTaskModel

    assert DailyTaskModel not in guarded_models()
    task = task_board.add("u-meena", "Scratch note")
    session.delete(session.get(DailyTaskModel, task.id))
    session.flush()
