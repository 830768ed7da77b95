import json
from datetime import datetime

from flask import Flask, Response, current_app, jsonify, request
from flask_cors import CORS

from todolist.bulk import apply_bulk_operation
from todolist.config import get_timezone, load_config
from todolist.database import TaskStore
from todolist.errors import BadRequestError, NotFoundError
from todolist.filters import build_filter
from todolist.models import isoformat_utc, utc_now
from todolist.responses import register_error_handlers, send_success
from todolist.stats import compute_stats
from todolist.validation import (
    build_create_record,
    build_update_patch,
    validate_for_create,
    validate_for_update,
)

API_VERSION = '1.0.0'


def get_store() -> TaskStore:
    return current_app.extensions['task_store']


def get_tz():
    return get_timezone(current_app.config['TIMEZONE'])


def get_json_body():
    """读取 JSON 请求体，空请求体按空字典处理"""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True).strip():
            raise BadRequestError('Invalid JSON body')
        return {}
    if not isinstance(data, dict):
        raise BadRequestError('Invalid request body')
    return data


def find_task_or_404(task_id):
    task = get_store().find_by_id(task_id)
    if task is None:
        raise NotFoundError('Task not found')
    return task


def create_app(config=None, store=None):
    """创建 Flask 应用"""
    app = Flask(__name__)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    # 启用跨域请求支持
    CORS(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=True,
        methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization'],
    )

    if store is None:
        store = TaskStore(app.config['DATABASE_PATH'])
    app.extensions['task_store'] = store

    register_error_handlers(app)
    register_routes(app)

    if app.config['APP_ENV'] == 'development':
        @app.before_request
        def log_request():
            app.logger.info("%s - %s %s", isoformat_utc(utc_now()), request.method, request.path)

    return app


def register_routes(app):

    @app.route('/health', methods=['GET'])
    def health():
        """健康检查"""
        is_healthy, health_message = get_store().check_database_health()
        return jsonify({
            'success': True,
            'message': 'Todo API is running',
            'timestamp': isoformat_utc(utc_now()),
            'environment': app.config['APP_ENV'],
            'database': 'connected' if is_healthy else 'disconnected',
            'details': health_message,
        })

    @app.route('/', methods=['GET'])
    def index():
        return jsonify({
            'success': True,
            'message': 'Todo API Server',
            'version': API_VERSION,
            'endpoints': {
                'health': '/health',
                'tasks': '/api/tasks',
            },
        })

    @app.route('/api/', methods=['GET'])
    def api_info():
        """API 信息"""
        return jsonify({
            'success': True,
            'message': 'Todo API',
            'endpoints': {
                'tasks': '/api/tasks',
                'stats': '/api/tasks/stats',
                'bulk': '/api/tasks/bulk',
                'export': '/api/tasks/export',
            },
        })

    @app.route('/api/tasks', methods=['GET'])
    def get_tasks():
        """获取任务列表，支持 completed/priority/status/search 过滤"""
        task_filter = build_filter(request.args)
        tasks = get_store().find(task_filter)
        return send_success([t.to_dict() for t in tasks], 200, f'Found {len(tasks)} tasks')

    @app.route('/api/tasks/stats', methods=['GET'])
    def get_task_stats():
        """任务统计"""
        stats = compute_stats(get_store().find())
        return send_success(stats, 200, 'Task statistics retrieved successfully')

    @app.route('/api/tasks/export', methods=['GET'])
    def export_tasks():
        """导出任务数据为JSON文件"""
        tasks = [t.to_dict() for t in get_store().find()]
        now = datetime.now(get_tz())

        export_data = {
            'export_time': now.isoformat(),
            'total_tasks': len(tasks),
            'completed_tasks': len([t for t in tasks if t['completed']]),
            'pending_tasks': len([t for t in tasks if not t['completed']]),
            'tasks': tasks,
        }

        filename = f'todo_tasks_export_{now.strftime("%Y%m%d_%H%M%S")}.json'
        return Response(
            json.dumps(export_data, ensure_ascii=False, indent=2),
            mimetype='application/json',
            headers={'Content-Disposition': f'attachment; filename={filename}'},
        )

    @app.route('/api/tasks/<task_id>', methods=['GET'])
    def get_task(task_id):
        """获取单个任务"""
        task = find_task_or_404(task_id)
        return send_success(task.to_dict(), 200, 'Task retrieved successfully')

    @app.route('/api/tasks', methods=['POST'])
    def create_task():
        """创建新任务"""
        validated = validate_for_create(get_json_body(), get_tz())
        task = get_store().insert(build_create_record(validated))
        return send_success(task.to_dict(), 201, 'Task created successfully')

    @app.route('/api/tasks/bulk', methods=['POST'])
    def bulk_operations():
        """批量删除/更新/完成"""
        body = get_json_body()
        result, message = apply_bulk_operation(
            get_store(), body.get('operation'), body.get('taskIds'), body.get('data'), get_tz())
        return send_success(result, 200, message)

    @app.route('/api/tasks/<task_id>', methods=['PUT'])
    def update_task(task_id):
        """部分更新任务"""
        find_task_or_404(task_id)
        patch = build_update_patch(validate_for_update(get_json_body(), get_tz()))
        task = get_store().update_by_id(task_id, patch)
        if task is None:
            raise NotFoundError('Task not found')
        return send_success(task.to_dict(), 200, 'Task updated successfully')

    @app.route('/api/tasks/<task_id>/toggle', methods=['PATCH'])
    def toggle_task_completion(task_id):
        """切换完成状态"""
        task = find_task_or_404(task_id)
        task.toggle()
        get_store().save(task)
        state = 'completed' if task.completed else 'incomplete'
        return send_success(task.to_dict(), 200, f'Task marked as {state}')

    @app.route('/api/tasks/<task_id>', methods=['DELETE'])
    def delete_task(task_id):
        """删除任务"""
        find_task_or_404(task_id)
        get_store().delete_by_id(task_id)
        return send_success(None, 200, 'Task deleted successfully')


def main():
    """命令行启动服务"""
    from todolist.cli import main as cli_main
    return cli_main(['serve'])


if __name__ == '__main__':
    main()
