"""个人任务管理：REST 后端与命令行客户端"""

__version__ = '1.0.0'
