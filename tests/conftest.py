# tests/conftest.py
import pytest

from todolist.app import create_app
from todolist.database import TaskStore
from todolist.services import ApiTaskService, LocalTaskService

from .fakes import FlaskClientSession


@pytest.fixture()
def store(tmp_path):
    """每个测试一个独立的 SQLite 文件"""
    return TaskStore(tmp_path / "tasks.db")


@pytest.fixture()
def app(store):
    return create_app(
        {
            'TESTING': True,
            'APP_ENV': 'testing',
            'TIMEZONE': 'UTC',
            'CORS_ORIGINS': ['http://localhost:5600'],
        },
        store=store,
    )


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def local_service(tmp_path):
    return LocalTaskService(tmp_path / "local" / "tasks.json", seed_demo_tasks=False)


@pytest.fixture()
def api_service(client):
    return ApiTaskService("http://testserver/api", session=FlaskClientSession(client))
