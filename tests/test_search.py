# tests/test_search.py
from todolist.models import Task
from todolist.search import search_tasks, sort_for_display


def test_search_covers_tags_status_and_priority():
    tasks = [
        Task(id="1", title="Landing page", tags=[{"name": "Design", "color": "#fff"}]),
        Task(id="2", title="CI", status="In Progress"),
        Task(id="3", title="Docs", priority="High"),
        Task(id="4", title="Unrelated"),
    ]

    assert [t.id for t in search_tasks(tasks, "design")] == ["1"]
    assert [t.id for t in search_tasks(tasks, "progress")] == ["2"]
    assert [t.id for t in search_tasks(tasks, "HIGH")] == ["3"]


def test_search_ranking():
    tasks = [
        Task(id="done", title="report", completed=True, status="Done"),
        Task(id="contains", title="weekly report"),
        Task(id="prefix", title="report draft"),
        Task(id="exact", title="Report"),
    ]

    assert [t.id for t in search_tasks(tasks, " report ")] == ["exact", "prefix", "contains", "done"]


def test_blank_query_returns_nothing():
    assert search_tasks([Task(title="x")], "   ") == []
    assert search_tasks([Task(title="x")], None) == []


def test_sort_for_display_puts_incomplete_first_and_is_stable():
    tasks = [
        Task(id="a", title="a", completed=True),
        Task(id="b", title="b"),
        Task(id="c", title="c", completed=True),
        Task(id="d", title="d"),
    ]
    assert [t.id for t in sort_for_display(tasks)] == ["b", "d", "a", "c"]
