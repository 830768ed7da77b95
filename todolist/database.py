import logging
import os
import re
import sqlite3
from contextlib import contextmanager

from todolist.filters import TaskFilter, contains_ci
from todolist.models import Task, new_task_id, utc_now
from todolist.errors import MalformedIdError

logger = logging.getLogger(__name__)

TASK_ID_RE = re.compile(r'^[0-9a-f]{32}$')

TASK_COLUMNS = [
    'id', 'title', 'description', 'created_at', 'updated_at', 'due_date',
    'priority', 'status', 'tags', 'completed', 'recurring',
]


class TaskStore:
    """
    基于 SQLite 的任务集合

    每次操作单独打开连接，单条写入是原子的，跨文档没有事务保证，
    同一任务的并发更新以最后一次写入为准。
    """

    def __init__(self, database_path):
        self.database_path = os.path.abspath(str(database_path))
        self.init_db()
        logger.info("TaskStore ready db=%s total=%s", self.database_path, self.count())

    @contextmanager
    def get_db_connection(self):
        """获取数据库连接的上下文管理器"""
        conn = None
        try:
            conn = sqlite3.connect(self.database_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            conn.create_function('contains_ci', 2, contains_ci, deterministic=True)
            conn.execute("PRAGMA journal_mode = WAL")

            yield conn
            conn.commit()

        except sqlite3.Error as e:
            logger.error("数据库错误: %s", e)
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                conn.close()

    def init_db(self):
        """初始化数据库和表结构"""
        db_dir = os.path.dirname(self.database_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)

        with self.get_db_connection() as conn:
            cursor = conn.execute("""
                SELECT name FROM sqlite_master
                WHERE type='table' AND name='tasks'
            """)
            table_exists = cursor.fetchone() is not None

            if not table_exists:
                logger.info("创建任务表...")
                conn.execute('''
                    CREATE TABLE tasks (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        due_date TEXT,
                        priority TEXT NOT NULL DEFAULT 'Medium',
                        status TEXT NOT NULL DEFAULT 'To Do',
                        tags TEXT NOT NULL DEFAULT '[]',
                        completed BOOLEAN NOT NULL DEFAULT 0,
                        recurring TEXT NOT NULL DEFAULT 'None'
                    )
                ''')
            else:
                self.upgrade_table_structure(conn)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_completed_created "
                "ON tasks(completed, created_at DESC)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(due_date)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")

    def upgrade_table_structure(self, conn):
        """升级表结构，添加缺失的列"""
        cursor = conn.execute("PRAGMA table_info(tasks)")
        existing_columns = [column[1] for column in cursor.fetchall()]

        columns_to_add = [
            ('description', "TEXT NOT NULL DEFAULT ''"),
            ('updated_at', "TEXT NOT NULL DEFAULT ''"),
            ('due_date', 'TEXT'),
            ('priority', "TEXT NOT NULL DEFAULT 'Medium'"),
            ('status', "TEXT NOT NULL DEFAULT 'To Do'"),
            ('tags', "TEXT NOT NULL DEFAULT '[]'"),
            ('recurring', "TEXT NOT NULL DEFAULT 'None'"),
        ]

        for column_name, column_type in columns_to_add:
            if column_name not in existing_columns:
                logger.info("添加缺失的列: %s", column_name)
                conn.execute(f'ALTER TABLE tasks ADD COLUMN {column_name} {column_type}')

    def check_database_health(self):
        """检查数据库健康状态"""
        try:
            with self.get_db_connection() as conn:
                cursor = conn.execute("""
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name='tasks'
                """)
                if not cursor.fetchone():
                    return False, "tasks table missing"

                cursor = conn.execute("PRAGMA table_info(tasks)")
                columns = {column[1] for column in cursor.fetchall()}
                missing_columns = set(TASK_COLUMNS) - columns
                if missing_columns:
                    return False, f"missing columns: {sorted(missing_columns)}"

                conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
                return True, "connected"
        except sqlite3.Error as e:
            logger.warning("Database health check failed: %s", e)
            return False, f"health check failed: {e}"

    @staticmethod
    def check_id(task_id):
        if not isinstance(task_id, str) or not TASK_ID_RE.match(task_id):
            raise MalformedIdError(task_id)
        return task_id

    def _write(self, conn, task):
        row = task.to_row()
        placeholders = ', '.join('?' for _ in TASK_COLUMNS)
        assignments = ', '.join(f'{c} = excluded.{c}' for c in TASK_COLUMNS if c != 'id')
        conn.execute(
            f'INSERT INTO tasks ({", ".join(TASK_COLUMNS)}) VALUES ({placeholders}) '
            f'ON CONFLICT(id) DO UPDATE SET {assignments}',
            [row[c] for c in TASK_COLUMNS],
        )

    # ---- 集合操作 ----

    def find(self, task_filter=None):
        """按条件查询，按创建时间倒序返回"""
        where, params = (task_filter or TaskFilter()).to_sql()
        with self.get_db_connection() as conn:
            cursor = conn.execute(
                f'SELECT * FROM tasks {where} ORDER BY created_at DESC, rowid DESC', params)
            return [Task.from_row(row) for row in cursor.fetchall()]

    def find_by_id(self, task_id):
        self.check_id(task_id)
        with self.get_db_connection() as conn:
            row = conn.execute('SELECT * FROM tasks WHERE id = ?', (task_id,)).fetchone()
            return Task.from_row(row) if row else None

    def count(self, task_filter=None):
        where, params = (task_filter or TaskFilter()).to_sql()
        with self.get_db_connection() as conn:
            (n,) = conn.execute(f'SELECT COUNT(*) FROM tasks {where}', params).fetchone()
            return int(n)

    def insert(self, task):
        """插入新任务，分配 ID 并记录创建时间"""
        now = utc_now()
        task.validate(check_due_date=True, now=now)
        task.sync_completion()
        task.id = new_task_id()
        task.created_at = now
        task.updated_at = now

        with self.get_db_connection() as conn:
            self._write(conn, task)
        logger.debug("Task added id=%s status=%s", task.id, task.status)
        return task

    def save(self, task):
        """保存已存在的任务，截止日期不再检查是否过期"""
        self.check_id(task.id)
        task.validate()
        task.sync_completion()
        task.updated_at = utc_now()

        with self.get_db_connection() as conn:
            self._write(conn, task)
        return task

    def update_by_id(self, task_id, patch):
        """应用补丁并保存，任务不存在时返回 None"""
        task = self.find_by_id(task_id)
        if task is None:
            return None
        task.apply_patch(patch)
        return self.save(task)

    def delete_by_id(self, task_id):
        self.check_id(task_id)
        with self.get_db_connection() as conn:
            cursor = conn.execute('DELETE FROM tasks WHERE id = ?', (task_id,))
            return cursor.rowcount > 0

    def update_many(self, task_ids, patch):
        """对一组任务应用同一个补丁，返回匹配数量"""
        ids = [task_id for task_id in task_ids if TASK_ID_RE.match(task_id)]
        if not ids:
            return 0

        now = utc_now()
        placeholders = ', '.join('?' for _ in ids)
        with self.get_db_connection() as conn:
            rows = conn.execute(
                f'SELECT * FROM tasks WHERE id IN ({placeholders})', ids).fetchall()
            tasks = [Task.from_row(row).apply_patch(patch) for row in rows]
            # 全部校验通过后再写入
            for task in tasks:
                task.validate()
                task.sync_completion()
                task.updated_at = now
            for task in tasks:
                self._write(conn, task)
        return len(tasks)

    def delete_many(self, task_ids):
        ids = [task_id for task_id in task_ids if TASK_ID_RE.match(task_id)]
        if not ids:
            return 0
        placeholders = ', '.join('?' for _ in ids)
        with self.get_db_connection() as conn:
            cursor = conn.execute(f'DELETE FROM tasks WHERE id IN ({placeholders})', ids)
            return cursor.rowcount
