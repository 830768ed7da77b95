"""
客户端搜索与展示排序

客户端搜索比后端的 search 参数范围更大：除了标题和描述，
还会匹配标签名、状态和优先级。
"""


def sort_for_display(tasks):
    """未完成的任务在前，其余保持原顺序"""
    return sorted(tasks, key=lambda t: 1 if t.completed else 0)


def task_matches(task, term):
    term = term.lower()
    return (
        term in task.title.lower()
        or term in (task.description or '').lower()
        or any(term in tag.get('name', '').lower() for tag in task.tags)
        or term in task.status.lower()
        or term in task.priority.lower()
    )


def search_tasks(tasks, query):
    """按关键词搜索任务，空关键词返回空列表"""
    term = (query or '').strip().lower()
    if not term:
        return []

    matched = [t for t in tasks if task_matches(t, term)]

    def rank(task):
        title = task.title.lower()
        return (
            1 if task.completed else 0,
            0 if title == term else 1,
            0 if title.startswith(term) else 1,
        )

    return sorted(matched, key=rank)
