# tests/test_database.py
import sqlite3
from datetime import timedelta

import pytest

from todolist.database import TASK_ID_RE, TaskStore
from todolist.errors import MalformedIdError, ValidationError
from todolist.filters import build_filter
from todolist.models import Task, utc_now


def test_insert_assigns_identity_and_timestamps(store):
    task = store.insert(Task(title="Write tests"))

    assert TASK_ID_RE.match(task.id)
    assert task.created_at is not None
    assert task.updated_at == task.created_at

    loaded = store.find_by_id(task.id)
    assert loaded.title == "Write tests"
    assert loaded.to_dict() == task.to_dict()


def test_insert_rejects_past_due_date(store):
    with pytest.raises(ValidationError) as exc:
        store.insert(Task(title="late", due_date=utc_now() - timedelta(hours=1)))
    assert exc.value.message == "Due date cannot be in the past"
    assert store.count() == 0


def test_insert_accepts_future_due_date(store):
    task = store.insert(Task(title="soon", due_date=utc_now() + timedelta(hours=1)))
    assert store.find_by_id(task.id).due_date is not None


def test_insert_enforces_completion_invariant(store):
    task = store.insert(Task(title="x", status="Done"))
    assert (task.completed, task.status) == (False, "To Do")


def test_insert_rejects_invalid_enum_without_writing(store):
    with pytest.raises(ValidationError):
        store.insert(Task(title="x", status="Blocked"))
    assert store.count() == 0


def test_find_by_id_distinguishes_malformed_and_missing(store):
    with pytest.raises(MalformedIdError):
        store.find_by_id("not-an-id")
    assert store.find_by_id("0" * 32) is None


def test_update_by_id_applies_only_patch_fields(store):
    task = store.insert(Task(title="keep me", description="old", priority="Low"))

    updated = store.update_by_id(task.id, {"description": "new"})

    assert updated.title == "keep me"
    assert updated.priority == "Low"
    assert updated.description == "new"
    assert updated.to_dict()['createdAt'] == task.to_dict()['createdAt']
    assert updated.updated_at >= task.updated_at


def test_update_by_id_allows_past_due_date(store):
    task = store.insert(Task(title="x", due_date=utc_now() + timedelta(days=1)))
    past = utc_now() - timedelta(days=1)

    updated = store.update_by_id(task.id, {"due_date": past})

    assert updated.due_date is not None and updated.due_date < utc_now()


def test_update_by_id_rejects_invalid_enum_and_keeps_stored_value(store):
    task = store.insert(Task(title="x", priority="High"))
    with pytest.raises(ValidationError):
        store.update_by_id(task.id, {"priority": "Urgent"})
    assert store.find_by_id(task.id).priority == "High"


def test_update_by_id_missing_task_returns_none(store):
    assert store.update_by_id("f" * 32, {"title": "x"}) is None


def test_save_syncs_status_with_completion(store):
    task = store.insert(Task(title="x", status="In Progress"))
    task.completed = True
    store.save(task)
    assert store.find_by_id(task.id).status == "Done"


def test_update_many_counts_matches_and_ignores_unknown_ids(store):
    a = store.insert(Task(title="a"))
    b = store.insert(Task(title="b"))

    count = store.update_many([a.id, b.id, "e" * 32, "garbage"], {"priority": "High"})

    assert count == 2
    assert {t.priority for t in store.find()} == {"High"}


def test_update_many_is_all_or_nothing_on_validation_failure(store):
    a = store.insert(Task(title="a"))
    with pytest.raises(ValidationError):
        store.update_many([a.id], {"status": "Nope"})
    assert store.find_by_id(a.id).status == "To Do"


def test_delete_by_id_and_delete_many(store):
    a = store.insert(Task(title="a"))
    b = store.insert(Task(title="b"))
    c = store.insert(Task(title="c"))

    assert store.delete_by_id(a.id) is True
    assert store.delete_by_id(a.id) is False
    assert store.delete_many([b.id, c.id, "d" * 32]) == 2
    assert store.count() == 0


def test_count_with_filter(store):
    store.insert(Task(title="a", completed=True))
    store.insert(Task(title="b"))
    assert store.count(build_filter({"completed": "true"})) == 1
    assert store.count() == 2


def test_tags_round_trip_through_storage(store):
    task = store.insert(Task(title="x", tags=[{"name": " Design "}, {"name": "UI", "color": "#10b981"}]))
    assert store.find_by_id(task.id).tags == [
        {"name": "Design", "color": "#3b82f6"},
        {"name": "UI", "color": "#10b981"},
    ]


def test_health_check(store):
    assert store.check_database_health() == (True, "connected")


def test_upgrade_adds_missing_columns(tmp_path):
    db_path = tmp_path / "legacy.db"
    conn = sqlite3.connect(str(db_path))
    conn.execute(
        "CREATE TABLE tasks (id TEXT PRIMARY KEY, title TEXT NOT NULL, "
        "completed BOOLEAN NOT NULL DEFAULT 0, created_at TEXT NOT NULL)")
    conn.execute("INSERT INTO tasks (id, title, completed, created_at) VALUES (?, ?, 0, ?)",
                 ("a" * 32, "legacy", "2024-01-01T00:00:00.000Z"))
    conn.commit()
    conn.close()

    store = TaskStore(db_path)

    assert store.check_database_health()[0] is True
    legacy = store.find_by_id("a" * 32)
    assert (legacy.title, legacy.priority, legacy.status, legacy.tags) == ("legacy", "Medium", "To Do", [])
