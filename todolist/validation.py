"""
请求数据校验与规范化

创建、更新、批量操作各自有一个输入类型，请求体在边界处解析成这些类型，
后续业务逻辑不再直接处理原始字典。
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz

from todolist.errors import BadRequestError
from todolist.models import PATCHABLE_FIELDS, Task, field_default

BULK_OPERATIONS = ['delete', 'update', 'complete']

# 请求体字段名 -> 模型属性名
PAYLOAD_FIELDS = {
    'title': 'title',
    'description': 'description',
    'dueDate': 'due_date',
    'priority': 'priority',
    'status': 'status',
    'tags': 'tags',
    'completed': 'completed',
    'recurring': 'recurring',
}


def _ensure_payload(payload):
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequestError('Invalid request body')
    return payload


def parse_due_date(value, tz=None):
    """解析截止日期，不带时区的时间按配置的时区解释"""
    tz = tz or pytz.utc
    if isinstance(value, bool):
        raise BadRequestError('Invalid due date format')

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        # 毫秒时间戳
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=pytz.utc)
        except (OverflowError, OSError, ValueError):
            raise BadRequestError('Invalid due date format')
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise BadRequestError('Invalid due date format')
    else:
        raise BadRequestError('Invalid due date format')

    if parsed.tzinfo is None:
        parsed = tz.localize(parsed)
    return parsed.astimezone(pytz.utc)


class CreateTaskInput:
    """创建任务的请求数据"""

    def __init__(self, title, description=None, due_date=None, priority=None, status=None,
                 tags=None, recurring=None):
        self.title = title
        self.description = description
        self.due_date = due_date
        self.priority = priority
        self.status = status
        self.tags = tags
        self.recurring = recurring


class UpdateTaskPatch:
    """更新请求中显式出现的字段"""

    def __init__(self, fields: Dict[str, Any]):
        self.fields = fields

    def __contains__(self, field):
        return field in self.fields


class BulkOperationInput:
    """批量操作请求"""

    def __init__(self, operation: str, task_ids: List[str], data: Optional[dict] = None):
        self.operation = operation
        self.task_ids = task_ids
        self.data = data

    @classmethod
    def from_payload(cls, payload):
        payload = _ensure_payload(payload)
        operation = payload.get('operation')
        task_ids = payload.get('taskIds')

        if not operation or not isinstance(task_ids, list):
            raise BadRequestError('Invalid bulk operation parameters')
        if operation not in BULK_OPERATIONS:
            raise BadRequestError(
                'Invalid operation. Supported operations: ' + ', '.join(BULK_OPERATIONS))

        data = payload.get('data')
        if operation == 'update':
            if data is None:
                raise BadRequestError('Update data is required for bulk update')
            if not isinstance(data, dict):
                raise BadRequestError('Invalid request body')

        return cls(operation, [str(task_id) for task_id in task_ids], data)


def validate_for_create(payload, tz=None) -> CreateTaskInput:
    """校验创建任务的请求体"""
    payload = _ensure_payload(payload)

    title = payload.get('title')
    if not isinstance(title, str) or not title.strip():
        raise BadRequestError('Title is required')

    due_date = None
    if payload.get('dueDate'):
        due_date = parse_due_date(payload['dueDate'], tz)

    # completed 不允许在创建时设置
    return CreateTaskInput(
        title=title,
        description=payload.get('description'),
        due_date=due_date,
        priority=payload.get('priority'),
        status=payload.get('status'),
        tags=payload.get('tags'),
        recurring=payload.get('recurring'),
    )


def build_create_record(validated: CreateTaskInput) -> Task:
    """根据校验后的数据生成待保存的任务记录"""
    description = validated.description
    if isinstance(description, str):
        description = description.strip()

    return Task(
        title=validated.title.strip(),
        description=description or field_default('description'),
        due_date=validated.due_date,
        priority=validated.priority or field_default('priority'),
        status=validated.status or field_default('status'),
        tags=validated.tags or field_default('tags'),
        completed=False,
        recurring=validated.recurring or field_default('recurring'),
    )


def validate_for_update(payload, tz=None) -> UpdateTaskPatch:
    """校验部分更新的请求体，只处理出现的字段"""
    payload = _ensure_payload(payload)
    fields = {}

    for key, attr in PAYLOAD_FIELDS.items():
        if key not in payload:
            continue
        value = payload[key]

        if attr == 'title':
            if not isinstance(value, str) or not value.strip():
                raise BadRequestError('Title cannot be empty')
        elif attr == 'due_date':
            # 空值表示清除截止日期
            value = parse_due_date(value, tz) if value else None

        fields[attr] = value

    return UpdateTaskPatch(fields)


def build_update_patch(validated: UpdateTaskPatch) -> Dict[str, Any]:
    """生成稀疏补丁"""
    patch = {}
    for field in PATCHABLE_FIELDS:
        if field not in validated:
            continue
        value = validated.fields[field]
        if field in ('title', 'description'):
            if value is None:
                value = ''
            elif isinstance(value, str):
                value = value.strip()
        patch[field] = value
    return patch
