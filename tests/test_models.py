# tests/test_models.py
from datetime import datetime, timedelta

import pytest
import pytz

from todolist.errors import ValidationError
from todolist.models import Task, isoformat_utc, normalize_tags, utc_now


def test_completed_forces_done_status():
    task = Task(title="x", status="In Progress", completed=True).sync_completion()
    assert task.status == "Done"


def test_incomplete_task_cannot_stay_done():
    task = Task(title="x", status="Done", completed=False).sync_completion()
    assert task.status == "To Do"


def test_incomplete_in_progress_is_left_alone():
    task = Task(title="x", status="In Progress").sync_completion()
    assert task.status == "In Progress"


@pytest.mark.parametrize("completed,status", [(False, "To Do"), (True, "Done")])
def test_toggle_twice_round_trips(completed, status):
    task = Task(title="x", completed=completed, status=status)
    task.toggle()
    assert task.completed is not completed
    task.toggle()
    assert task.completed is completed
    assert task.status == status


def test_validate_reports_enum_and_length_errors_together():
    task = Task(title="t" * 201, description="d" * 1001, priority="Urgent", recurring="Yearly")
    with pytest.raises(ValidationError) as exc:
        task.validate()

    assert exc.value.status_code == 400
    assert exc.value.errors == [
        "Title cannot be more than 200 characters",
        "Description cannot be more than 1000 characters",
        "`Urgent` is not a valid enum value for path `priority`",
        "`Yearly` is not a valid enum value for path `recurring`",
    ]
    assert exc.value.message == ", ".join(exc.value.errors)


def test_validate_length_is_measured_after_trimming():
    task = Task(title="  " + "t" * 200 + "  ")
    assert task.validate() is True
    assert len(task.title) == 200


def test_validate_fills_defaults_for_missing_values():
    task = Task(title="x", priority=None, status=None, recurring=None, description=None)
    task.validate()
    assert (task.priority, task.status, task.recurring, task.description) == ("Medium", "To Do", "None", "")


def test_validate_rejects_non_boolean_completed():
    with pytest.raises(ValidationError):
        Task(title="x", completed="yes").validate()


def test_past_due_date_only_checked_when_requested():
    task = Task(title="x", due_date=utc_now() - timedelta(hours=1))
    assert task.validate() is True
    with pytest.raises(ValidationError) as exc:
        task.validate(check_due_date=True)
    assert exc.value.errors == ["Due date cannot be in the past"]


def test_normalize_tags_trims_names_and_defaults_color():
    tags = normalize_tags([{"name": " work "}, {"name": "home", "color": "#10b981", "extra": 1},
                           {"name": "work"}])
    assert tags == [
        {"name": "work", "color": "#3b82f6"},
        {"name": "home", "color": "#10b981"},
        {"name": "work", "color": "#3b82f6"},
    ]


@pytest.mark.parametrize("tags", [[{"name": ""}], [{"color": "#fff"}], ["work"], "work"])
def test_normalize_tags_rejects_bad_entries(tags):
    with pytest.raises(ValidationError):
        normalize_tags(tags)


def test_to_dict_uses_api_field_names_and_omits_missing_due_date():
    created = datetime(2024, 1, 15, 8, 30, tzinfo=pytz.utc)
    data = Task(id="a" * 32, title="x", created_at=created, updated_at=created).to_dict()

    assert data["createdAt"] == "2024-01-15T08:30:00.000Z"
    assert "dueDate" not in data
    assert data["tags"] == []


def test_from_dict_round_trips_to_dict():
    due = datetime(2030, 5, 1, 12, tzinfo=pytz.utc)
    task = Task(id="b" * 32, title="x", created_at=utc_now(), due_date=due,
                tags=[{"name": "a", "color": "#000"}], completed=True, status="Done")
    again = Task.from_dict(task.to_dict())

    assert again.to_dict() == task.to_dict()
    assert again.due_date == due


def test_isoformat_utc_converts_offsets():
    value = pytz.timezone("Asia/Shanghai").localize(datetime(2030, 1, 1, 8))
    assert isoformat_utc(value) == "2030-01-01T00:00:00.000Z"


def test_is_overdue():
    now = utc_now()
    assert Task(title="x", due_date=now - timedelta(minutes=1)).is_overdue(now)
    assert not Task(title="x", due_date=now + timedelta(minutes=1)).is_overdue(now)
    assert not Task(title="x", due_date=now - timedelta(minutes=1), completed=True).is_overdue(now)
    assert not Task(title="x").is_overdue(now)
