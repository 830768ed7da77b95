# todolist/config.py
import logging
import os

import pytz
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()

# ================= 配置 =================
APP_ENV = os.getenv('APP_ENV', 'development')

HOST = os.getenv('TODO_HOST', '0.0.0.0')
PORT = int(os.getenv('TODO_PORT', '6900'))

DATABASE_PATH = os.getenv('TODO_DATABASE_PATH', os.path.join(os.getcwd(), 'todolist.db'))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv('TODO_CORS_ORIGINS', 'http://localhost:5600,http://127.0.0.1:5600').split(',')
    if origin.strip()
]

TIMEZONE = os.getenv('TODO_TIMEZONE', 'UTC')

# 客户端配置
API_URL = os.getenv('TODO_API_URL', 'http://localhost:6900/api')
API_TIMEOUT_SECONDS = float(os.getenv('TODO_API_TIMEOUT', '10'))
PERSISTENCE = os.getenv('TODO_PERSISTENCE', 'local')
LOCAL_STORE_PATH = os.path.expanduser(os.getenv('TODO_LOCAL_STORE', '~/.todolist/tasks.json'))

LOG_LEVEL = os.getenv('TODO_LOG_LEVEL', 'INFO').upper()
LOG_FILE = os.getenv('TODO_LOG_FILE') or None

MAX_CONTENT_LENGTH = 10 * 1024 * 1024


def load_config(**overrides):
    """汇总配置为字典，可以按需覆盖"""
    config = {
        'APP_ENV': APP_ENV,
        'HOST': HOST,
        'PORT': PORT,
        'DATABASE_PATH': DATABASE_PATH,
        'CORS_ORIGINS': list(CORS_ORIGINS),
        'TIMEZONE': TIMEZONE,
        'API_URL': API_URL,
        'API_TIMEOUT_SECONDS': API_TIMEOUT_SECONDS,
        'PERSISTENCE': PERSISTENCE,
        'LOCAL_STORE_PATH': LOCAL_STORE_PATH,
        'LOG_LEVEL': LOG_LEVEL,
        'LOG_FILE': LOG_FILE,
        'MAX_CONTENT_LENGTH': MAX_CONTENT_LENGTH,
    }
    config.update(overrides)
    return config


def get_timezone(name):
    """返回 pytz 时区，名称无效时回退到 UTC"""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logging.getLogger(__name__).warning("Unknown timezone %r, falling back to UTC", name)
        return pytz.utc
