"""
数据模型定义
"""
import json
import uuid
from datetime import datetime

import pytz

from todolist.errors import ValidationError

PRIORITIES = ['Low', 'Medium', 'High']
STATUSES = ['To Do', 'In Progress', 'Done']
RECURRING = ['None', 'Daily', 'Weekly', 'Monthly']

STATUS_DONE = 'Done'
STATUS_TODO = 'To Do'
DEFAULT_TAG_COLOR = '#3b82f6'

# 创建和更新共用的字段规则表
FIELD_RULES = {
    'title': {'type': str, 'required': True, 'max_length': 200, 'label': 'Title'},
    'description': {'type': str, 'max_length': 1000, 'default': '', 'label': 'Description'},
    'due_date': {'type': datetime},
    'priority': {'type': str, 'choices': PRIORITIES, 'default': 'Medium'},
    'status': {'type': str, 'choices': STATUSES, 'default': STATUS_TODO},
    'tags': {'type': list, 'default': list},
    'completed': {'type': bool, 'default': False},
    'recurring': {'type': str, 'choices': RECURRING, 'default': 'None'},
}

# 补丁允许修改的字段，id 和 created_at 不在其中
PATCHABLE_FIELDS = list(FIELD_RULES)


def field_default(field):
    """返回字段默认值"""
    default = FIELD_RULES[field].get('default')
    return default() if callable(default) else default


def utc_now():
    """当前 UTC 时间"""
    return datetime.now(pytz.utc)


def new_task_id():
    return uuid.uuid4().hex


def isoformat_utc(value):
    """转换为带毫秒的 UTC ISO 字符串，例如 2024-01-15T08:30:00.000Z"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(pytz.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value):
    """解析存储层写出的 ISO 时间戳"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = pytz.utc.localize(parsed)
    return parsed.astimezone(pytz.utc)


def normalize_tags(tags):
    """规范化标签列表，名称去空白，颜色缺省为蓝色"""
    if tags is None:
        return []
    if not isinstance(tags, (list, tuple)):
        raise ValidationError(['Tags must be a list of {name, color} objects'])

    normalized = []
    errors = []
    for tag in tags:
        if not isinstance(tag, dict):
            errors.append('Tags must be a list of {name, color} objects')
            continue
        name = tag.get('name')
        if not isinstance(name, str) or not name.strip():
            errors.append('Tag name is required')
            continue
        color = tag.get('color')
        if not isinstance(color, str) or not color.strip():
            color = DEFAULT_TAG_COLOR
        normalized.append({'name': name.strip(), 'color': color})

    if errors:
        raise ValidationError(list(dict.fromkeys(errors)))
    return normalized


class Task:
    """任务模型"""

    def __init__(self, id=None, title="", description="", created_at=None, updated_at=None,
                 due_date=None, priority="Medium", status="To Do", tags=None, completed=False,
                 recurring="None"):
        self.id = id
        self.title = title
        self.description = description
        self.created_at = created_at
        self.updated_at = updated_at
        self.due_date = due_date
        self.priority = priority
        self.status = status
        self.tags = tags if tags is not None else []
        self.completed = completed
        self.recurring = recurring

    def __repr__(self):
        return f"<Task id={self.id!r} title={self.title!r} status={self.status!r}>"

    def to_dict(self):
        """将任务对象转换为 API 使用的字典"""
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'createdAt': isoformat_utc(self.created_at),
            'updatedAt': isoformat_utc(self.updated_at),
            'priority': self.priority,
            'status': self.status,
            'tags': [dict(tag) for tag in self.tags],
            'completed': self.completed,
            'recurring': self.recurring,
        }
        if self.due_date is not None:
            data['dueDate'] = isoformat_utc(self.due_date)
        return data

    @classmethod
    def from_dict(cls, data):
        """从 API 字典创建任务对象"""
        return cls(
            id=data.get('id'),
            title=data.get('title', ''),
            description=data.get('description', ''),
            created_at=parse_timestamp(data.get('createdAt')),
            updated_at=parse_timestamp(data.get('updatedAt')),
            due_date=parse_timestamp(data.get('dueDate')),
            priority=data.get('priority', 'Medium'),
            status=data.get('status', STATUS_TODO),
            tags=list(data.get('tags') or []),
            completed=bool(data.get('completed', False)),
            recurring=data.get('recurring', 'None'),
        )

    @classmethod
    def from_row(cls, row):
        """从数据库行创建任务对象"""
        keys = row.keys()
        return cls(
            id=row['id'],
            title=row['title'],
            description=row['description'] if 'description' in keys else '',
            created_at=parse_timestamp(row['created_at']),
            updated_at=parse_timestamp(row['updated_at']) if 'updated_at' in keys else None,
            due_date=parse_timestamp(row['due_date']) if 'due_date' in keys else None,
            priority=row['priority'] if 'priority' in keys else 'Medium',
            status=row['status'] if 'status' in keys else STATUS_TODO,
            tags=json.loads(row['tags']) if 'tags' in keys and row['tags'] else [],
            completed=bool(row['completed']),
            recurring=row['recurring'] if 'recurring' in keys else 'None',
        )

    def to_row(self):
        """转换为数据库列值"""
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'created_at': isoformat_utc(self.created_at),
            'updated_at': isoformat_utc(self.updated_at),
            'due_date': isoformat_utc(self.due_date),
            'priority': self.priority,
            'status': self.status,
            'tags': json.dumps(self.tags, ensure_ascii=False),
            'completed': 1 if self.completed else 0,
            'recurring': self.recurring,
        }

    def apply_patch(self, patch):
        """应用稀疏补丁，未出现的字段保持不变"""
        for field, value in patch.items():
            if field not in PATCHABLE_FIELDS:
                continue
            setattr(self, field, value)
        return self

    def sync_completion(self):
        """保持 completed 与 status 同步"""
        if self.completed and self.status != STATUS_DONE:
            self.status = STATUS_DONE
        elif not self.completed and self.status == STATUS_DONE:
            self.status = STATUS_TODO
        return self

    def toggle(self):
        self.completed = not self.completed
        return self.sync_completion()

    def is_overdue(self, now=None):
        if self.completed or self.due_date is None:
            return False
        return self.due_date < (now or utc_now())

    def validate(self, check_due_date=False, now=None):
        """验证任务数据的有效性，失败时抛出 ValidationError"""
        errors = []

        for field, rule in FIELD_RULES.items():
            value = getattr(self, field)
            label = rule.get('label', field)

            if value is None:
                if rule.get('required'):
                    errors.append(f"{label} is required")
                elif 'default' in rule:
                    setattr(self, field, field_default(field))
                continue

            expected = rule['type']
            if expected is bool:
                if not isinstance(value, bool):
                    errors.append(f"Cast to Boolean failed for path `{field}`")
                continue
            if not isinstance(value, expected):
                errors.append(f"Cast to {expected.__name__} failed for path `{field}`")
                continue

            if expected is str:
                value = value.strip()
                setattr(self, field, value)
                if rule.get('required') and not value:
                    errors.append(f"{label} is required")
                if 'max_length' in rule and len(value) > rule['max_length']:
                    errors.append(f"{label} cannot be more than {rule['max_length']} characters")
                if 'choices' in rule and value not in rule['choices']:
                    errors.append(f"`{value}` is not a valid enum value for path `{field}`")

        if isinstance(self.tags, list):
            try:
                self.tags = normalize_tags(self.tags)
            except ValidationError as e:
                errors.extend(e.errors)

        if check_due_date and isinstance(self.due_date, datetime):
            if self.due_date < (now or utc_now()):
                errors.append("Due date cannot be in the past")

        if errors:
            raise ValidationError(errors)
        return True
