"""
错误类型定义
"""


class ApiError(Exception):
    """携带 HTTP 状态码的业务错误"""

    def __init__(self, status_code, message, is_operational=True):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.is_operational = is_operational


class BadRequestError(ApiError):
    def __init__(self, message):
        super().__init__(400, message)


class NotFoundError(ApiError):
    def __init__(self, message='Task not found'):
        super().__init__(404, message)


class ValidationError(ApiError):
    """字段校验失败，可以同时携带多条信息"""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(400, ', '.join(self.errors))


class MalformedIdError(Exception):
    """任务 ID 格式不正确，对外表现与不存在相同"""

    def __init__(self, task_id):
        super().__init__(f"Invalid task id {task_id!r}")
        self.task_id = task_id
