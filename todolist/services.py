"""
客户端任务服务

同一套接口有两种实现：
- LocalTaskService: 任务保存在本地 JSON 文件，不需要后端
- ApiTaskService: 通过 HTTP 调用后端 /api/tasks

使用哪种实现在启动时由配置决定，调用方不做区分。两种模式互不同步。
"""
import json
import logging
import os
from datetime import datetime
from typing import Dict, List, Optional

import pytz
import requests

from todolist.config import get_timezone
from todolist.errors import NotFoundError
from todolist.filters import build_filter, sort_newest_first
from todolist.models import STATUS_DONE, Task, isoformat_utc, new_task_id, utc_now
from todolist.stats import compute_stats
from todolist.validation import (
    BulkOperationInput,
    build_create_record,
    build_update_patch,
    validate_for_create,
    validate_for_update,
)

logger = logging.getLogger(__name__)


class ApiClientError(RuntimeError):
    """后端请求失败或返回 success=false"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _demo_tasks():
    """首次使用时的示例任务"""
    # 固定 ID，未保存前多次读取也能找到同一任务
    return [
        Task(
            id="1",
            title="Design new landing page",
            description="Create a modern, responsive landing page with hero section and "
                        "call-to-action buttons. Should include testimonials and feature highlights.",
            created_at=datetime(2024, 1, 15, tzinfo=pytz.utc),
            due_date=datetime(2024, 2, 1, tzinfo=pytz.utc),
            priority="High",
            status="In Progress",
            tags=[{"name": "Design", "color": "#3b82f6"}, {"name": "Frontend", "color": "#10b981"}],
        ),
        Task(
            id="2",
            title="Set up CI/CD pipeline",
            description="Configure automated testing and deployment pipeline using GitHub Actions.",
            created_at=datetime(2024, 1, 10, tzinfo=pytz.utc),
            due_date=datetime(2024, 1, 25, tzinfo=pytz.utc),
            priority="Medium",
            status="To Do",
            tags=[{"name": "DevOps", "color": "#f59e0b"}, {"name": "Backend", "color": "#ef4444"}],
        ),
        Task(
            id="3",
            title="Write API documentation",
            description="Document all REST API endpoints with examples and response schemas.",
            created_at=datetime(2024, 1, 5, tzinfo=pytz.utc),
            priority="Low",
            status=STATUS_DONE,
            tags=[{"name": "Documentation", "color": "#8b5cf6"}],
            completed=True,
        ),
    ]


class TaskService:
    """任务操作接口"""

    def list_tasks(self, filters: Optional[Dict[str, str]] = None) -> List[Task]:
        raise NotImplementedError

    def get_task(self, task_id: str) -> Optional[Task]:
        raise NotImplementedError

    def add_task(self, data: dict) -> Task:
        raise NotImplementedError

    def update_task(self, task_id: str, data: dict) -> Task:
        raise NotImplementedError

    def toggle_complete(self, task_id: str) -> Task:
        raise NotImplementedError

    def delete_task(self, task_id: str) -> None:
        raise NotImplementedError

    def get_stats(self) -> dict:
        raise NotImplementedError

    def bulk(self, operation: str, task_ids: List[str], data: Optional[dict] = None) -> dict:
        raise NotImplementedError


class LocalTaskService(TaskService):
    """本地 JSON 文件存储，读写失败只记录日志，不影响使用"""

    def __init__(self, path, tz=None, seed_demo_tasks=True):
        self.path = os.path.abspath(os.path.expanduser(str(path)))
        self.tz = tz or pytz.utc
        self.seed_demo_tasks = seed_demo_tasks

    def _load(self) -> List[Task]:
        if not os.path.exists(self.path):
            return _demo_tasks() if self.seed_demo_tasks else []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return [Task.from_dict(item) for item in data]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to load tasks from %s: %s", self.path, e)
            return []

    def _save(self, tasks: List[Task]) -> None:
        tmp_path = self.path + '.tmp'
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump([t.to_dict() for t in tasks], f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning("Failed to save tasks to %s: %s", self.path, e)

    @staticmethod
    def _find(tasks, task_id) -> Task:
        for task in tasks:
            if task.id == task_id:
                return task
        raise NotFoundError('Task not found')

    def list_tasks(self, filters=None):
        task_filter = build_filter(filters)
        return sort_newest_first([t for t in self._load() if task_filter.matches(t)])

    def get_task(self, task_id):
        for task in self._load():
            if task.id == task_id:
                return task
        return None

    def add_task(self, data):
        task = build_create_record(validate_for_create(data, self.tz))
        now = utc_now()
        task.validate(check_due_date=True, now=now)
        task.sync_completion()
        task.id = new_task_id()
        task.created_at = now
        task.updated_at = now

        tasks = self._load()
        tasks.insert(0, task)
        self._save(tasks)
        return task

    def update_task(self, task_id, data):
        tasks = self._load()
        task = self._find(tasks, task_id)
        patch = build_update_patch(validate_for_update(data, self.tz))
        task.apply_patch(patch)
        task.validate()
        task.sync_completion()
        task.updated_at = utc_now()
        self._save(tasks)
        return task

    def toggle_complete(self, task_id):
        tasks = self._load()
        task = self._find(tasks, task_id).toggle()
        task.updated_at = utc_now()
        self._save(tasks)
        return task

    def delete_task(self, task_id):
        tasks = self._load()
        task = self._find(tasks, task_id)
        tasks.remove(task)
        self._save(tasks)

    def get_stats(self):
        return compute_stats(self._load())

    def bulk(self, operation, task_ids, data=None):
        request = BulkOperationInput.from_payload(
            {'operation': operation, 'taskIds': task_ids, 'data': data})
        tasks = self._load()
        ids = set(request.task_ids)
        targets = [t for t in tasks if t.id in ids]

        if request.operation == 'delete':
            self._save([t for t in tasks if t.id not in ids])
            return {'deletedCount': len(targets)}

        if request.operation == 'update':
            patch = build_update_patch(validate_for_update(request.data, self.tz))
        else:
            patch = {'completed': True, 'status': STATUS_DONE}

        now = utc_now()
        for task in targets:
            task.apply_patch(patch)
            task.validate()
            task.sync_completion()
            task.updated_at = now
        self._save(tasks)
        return {'modifiedCount': len(targets)}


class ApiTaskService(TaskService):
    """通过 requests 调用后端接口"""

    def __init__(self, base_url, session=None, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method, path, params=None, payload=None):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, params=params, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ApiClientError(f"Request failed: {e}")

        try:
            body = resp.json()
        except ValueError:
            raise ApiClientError(
                f"Invalid response from {url} ({resp.status_code}): {resp.text[:200]}",
                resp.status_code)

        if not isinstance(body, dict) or not body.get('success'):
            error = body.get('error') if isinstance(body, dict) else None
            error = error or {}
            status_code = error.get('statusCode', resp.status_code)
            message = error.get('message') or f"HTTP {resp.status_code}"
            if status_code == 404:
                raise NotFoundError(message)
            raise ApiClientError(message, status_code)

        return body.get('data')

    @staticmethod
    def _encode(data):
        payload = dict(data or {})
        if isinstance(payload.get('dueDate'), datetime):
            payload['dueDate'] = isoformat_utc(payload['dueDate'])
        return payload

    def list_tasks(self, filters=None):
        params = {}
        for key, value in (filters or {}).items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = 'true' if value else 'false'
            params[key] = value
        data = self._request('GET', '/tasks', params=params)
        return [Task.from_dict(item) for item in data]

    def get_task(self, task_id):
        try:
            return Task.from_dict(self._request('GET', f'/tasks/{task_id}'))
        except NotFoundError:
            return None

    def add_task(self, data):
        return Task.from_dict(self._request('POST', '/tasks', payload=self._encode(data)))

    def update_task(self, task_id, data):
        return Task.from_dict(self._request('PUT', f'/tasks/{task_id}', payload=self._encode(data)))

    def toggle_complete(self, task_id):
        return Task.from_dict(self._request('PATCH', f'/tasks/{task_id}/toggle'))

    def delete_task(self, task_id):
        self._request('DELETE', f'/tasks/{task_id}')

    def get_stats(self):
        return self._request('GET', '/tasks/stats')

    def bulk(self, operation, task_ids, data=None):
        payload = {'operation': operation, 'taskIds': list(task_ids)}
        if data is not None:
            payload['data'] = self._encode(data)
        return self._request('POST', '/tasks/bulk', payload=payload)


def create_service(config) -> TaskService:
    """根据配置选择任务服务实现"""
    mode = config.get('PERSISTENCE', 'local')
    if mode == 'local':
        return LocalTaskService(config['LOCAL_STORE_PATH'], tz=get_timezone(config.get('TIMEZONE', 'UTC')))
    if mode == 'api':
        return ApiTaskService(config['API_URL'], timeout=config.get('API_TIMEOUT_SECONDS', 10))
    raise ValueError(f"Unknown persistence mode: {mode!r}")
