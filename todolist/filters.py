"""
列表查询过滤条件
"""
from typing import List, Optional, Tuple


def contains_ci(haystack, needle):
    """不区分大小写的子串匹配，注册为 SQLite 函数使用"""
    if haystack is None or needle is None:
        return 0
    return 1 if str(needle).lower() in str(haystack).lower() else 0


class TaskFilter:
    """由查询参数生成的过滤条件，未设置的维度不做限制"""

    def __init__(self, completed: Optional[bool] = None, priority: Optional[str] = None,
                 status: Optional[str] = None, search: Optional[str] = None):
        self.completed = completed
        self.priority = priority
        self.status = status
        self.search = search

    def __repr__(self):
        return (f"TaskFilter(completed={self.completed!r}, priority={self.priority!r}, "
                f"status={self.status!r}, search={self.search!r})")

    def is_empty(self):
        return (self.completed is None and self.priority is None
                and self.status is None and self.search is None)

    def to_sql(self) -> Tuple[str, List]:
        """生成 WHERE 子句和参数"""
        clauses = []
        params = []

        if self.completed is not None:
            clauses.append('completed = ?')
            params.append(1 if self.completed else 0)

        if self.priority is not None:
            clauses.append('priority = ?')
            params.append(self.priority)

        if self.status is not None:
            clauses.append('status = ?')
            params.append(self.status)

        if self.search is not None:
            clauses.append('(contains_ci(title, ?) OR contains_ci(description, ?))')
            params.extend([self.search, self.search])

        if not clauses:
            return '', []
        return 'WHERE ' + ' AND '.join(clauses), params

    def matches(self, task) -> bool:
        """内存中判断任务是否满足条件"""
        if self.completed is not None and task.completed != self.completed:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.status is not None and task.status != self.status:
            return False
        if self.search is not None:
            return bool(contains_ci(task.title, self.search)
                        or contains_ci(task.description, self.search))
        return True


def build_filter(query_params) -> TaskFilter:
    """把查询参数转换为过滤条件"""
    query_params = query_params or {}

    completed = None
    if query_params.get('completed') is not None:
        completed = query_params.get('completed') == 'true'

    return TaskFilter(
        completed=completed,
        priority=query_params.get('priority') or None,
        status=query_params.get('status') or None,
        search=query_params.get('search') or None,
    )


def sort_newest_first(tasks):
    """按创建时间倒序"""
    return sorted(tasks, key=lambda t: t.created_at.timestamp() if t.created_at else 0.0,
                  reverse=True)
