import math

from todolist.models import STATUS_DONE, utc_now


def completion_rate(completed, total):
    """完成率百分比，四舍五入到整数"""
    if total <= 0:
        return 0
    return int(math.floor(completed * 100.0 / total + 0.5))


def compute_stats(tasks, now=None):
    """根据全部任务统计数量"""
    now = now or utc_now()
    tasks = list(tasks)

    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)
    # completed=False 但 status=Done 的任务既不算完成也不算待办
    pending = sum(1 for t in tasks if not t.completed and t.status != STATUS_DONE)
    overdue = sum(1 for t in tasks if t.is_overdue(now))

    return {
        'total': total,
        'completed': completed,
        'pending': pending,
        'overdue': overdue,
        'completionRate': completion_rate(completed, total),
    }
