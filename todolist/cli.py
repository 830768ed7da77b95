"""todolist 命令行

    todolist serve                      启动后端服务
    todolist list --pending --search x  列出任务
    todolist add "Write docs" --priority High --due 2030-01-01 --tag docs:#8b5cf6
    todolist toggle <id>

--backend local 使用本地 JSON 文件，--backend api 调用后端服务。
"""
import argparse
import logging
import sys
from typing import List, Optional

from todolist.config import load_config
from todolist.errors import ApiError
from todolist.logging_setup import setup_logging
from todolist.models import PRIORITIES, RECURRING, STATUSES, isoformat_utc
from todolist.search import search_tasks, sort_for_display
from todolist.services import ApiClientError, create_service

logger = logging.getLogger(__name__)


def parse_tag(value):
    """解析 name[:color] 形式的标签"""
    name, _, color = value.partition(':')
    tag = {'name': name}
    if color:
        tag['color'] = color
    return tag


def format_task(task):
    mark = 'x' if task.completed else ' '
    line = f"[{mark}] {task.id}  {task.title}  ({task.priority}, {task.status})"
    if task.due_date is not None:
        line += f"  due {isoformat_utc(task.due_date)}"
    if task.recurring and task.recurring != 'None':
        line += f"  every {task.recurring.lower()}"
    if task.tags:
        line += '  ' + ' '.join(f"#{tag['name']}" for tag in task.tags)
    return line


def print_tasks(tasks):
    if not tasks:
        print("No tasks.")
        return
    for task in tasks:
        print(format_task(task))


def build_parser():
    parser = argparse.ArgumentParser(prog='todolist', description='Personal task manager')
    parser.add_argument('--backend', choices=['local', 'api'], help='persistence mode')
    parser.add_argument('--api-url', help='backend base URL, e.g. http://localhost:6900/api')
    parser.add_argument('--store', help='local JSON file path')
    sub = parser.add_subparsers(dest='command', required=True)

    serve = sub.add_parser('serve', help='run the HTTP API')
    serve.add_argument('--host')
    serve.add_argument('--port', type=int)

    ls = sub.add_parser('list', help='list tasks, newest first')
    state = ls.add_mutually_exclusive_group()
    state.add_argument('--completed', action='store_const', const='true', dest='completed')
    state.add_argument('--pending', action='store_const', const='false', dest='completed')
    ls.add_argument('--priority', choices=PRIORITIES)
    ls.add_argument('--status', choices=STATUSES)
    ls.add_argument('--search')

    search = sub.add_parser('search', help='search title, description, tags, status and priority')
    search.add_argument('query')

    show = sub.add_parser('show', help='show a single task')
    show.add_argument('task_id')

    add = sub.add_parser('add', help='create a task')
    add.add_argument('title')
    add.add_argument('--description')
    add.add_argument('--due', dest='due_date')
    add.add_argument('--priority', choices=PRIORITIES)
    add.add_argument('--status', choices=STATUSES)
    add.add_argument('--tag', dest='tags', action='append', type=parse_tag)
    add.add_argument('--recurring', choices=RECURRING)

    edit = sub.add_parser('edit', help='update fields of a task')
    edit.add_argument('task_id')
    edit.add_argument('--title')
    edit.add_argument('--description')
    edit.add_argument('--due', dest='due_date', help='empty string clears the due date')
    edit.add_argument('--priority', choices=PRIORITIES)
    edit.add_argument('--status', choices=STATUSES)
    edit.add_argument('--tag', dest='tags', action='append', type=parse_tag)
    edit.add_argument('--clear-tags', action='store_true')
    edit.add_argument('--recurring', choices=RECURRING)

    toggle = sub.add_parser('toggle', help='flip completion')
    toggle.add_argument('task_id')

    delete = sub.add_parser('delete', help='delete a task')
    delete.add_argument('task_id')

    sub.add_parser('stats', help='show statistics')

    bulk = sub.add_parser('bulk', help='delete, update or complete several tasks')
    bulk.add_argument('operation', choices=['delete', 'update', 'complete'])
    bulk.add_argument('task_ids', nargs='+')
    bulk.add_argument('--priority', choices=PRIORITIES)
    bulk.add_argument('--status', choices=STATUSES)
    bulk.add_argument('--recurring', choices=RECURRING)

    return parser


def task_payload(args, partial=False):
    """把命令行参数转换为请求体，未提供的参数不出现"""
    payload = {}
    if getattr(args, 'title', None) is not None:
        payload['title'] = args.title
    if args.description is not None:
        payload['description'] = args.description
    if args.due_date is not None:
        payload['dueDate'] = args.due_date
    if args.priority is not None:
        payload['priority'] = args.priority
    if args.status is not None:
        payload['status'] = args.status
    if args.tags:
        payload['tags'] = args.tags
    elif partial and args.clear_tags:
        payload['tags'] = []
    if args.recurring is not None:
        payload['recurring'] = args.recurring
    return payload


def serve(config, args):
    from todolist.app import create_app

    app = create_app(config)
    host = args.host or config['HOST']
    port = args.port or config['PORT']
    logger.info("Todo API Server starting env=%s url=http://%s:%s/api", config['APP_ENV'], host, port)
    app.run(host=host, port=port, debug=config['APP_ENV'] == 'development')
    return 0


def run_command(service, args):
    if args.command == 'list':
        filters = {'completed': args.completed, 'priority': args.priority,
                   'status': args.status, 'search': args.search}
        tasks = service.list_tasks({k: v for k, v in filters.items() if v is not None})
        print_tasks(sort_for_display(tasks))
    elif args.command == 'search':
        print_tasks(search_tasks(service.list_tasks(), args.query))
    elif args.command == 'show':
        task = service.get_task(args.task_id)
        if task is None:
            print("Task not found", file=sys.stderr)
            return 1
        print(format_task(task))
        if task.description:
            print(f"    {task.description}")
    elif args.command == 'add':
        task = service.add_task(task_payload(args))
        print(f"Task created: {task.id}")
    elif args.command == 'edit':
        task = service.update_task(args.task_id, task_payload(args, partial=True))
        print(format_task(task))
    elif args.command == 'toggle':
        task = service.toggle_complete(args.task_id)
        print(f"Task marked as {'completed' if task.completed else 'incomplete'}")
    elif args.command == 'delete':
        service.delete_task(args.task_id)
        print("Task deleted")
    elif args.command == 'stats':
        stats = service.get_stats()
        print(f"Total: {stats['total']}  Completed: {stats['completed']}  "
              f"Pending: {stats['pending']}  Overdue: {stats['overdue']}  "
              f"Completion: {stats['completionRate']}%")
    elif args.command == 'bulk':
        data = None
        if args.operation == 'update':
            data = {k: v for k, v in (('priority', args.priority), ('status', args.status),
                                      ('recurring', args.recurring)) if v is not None}
        result = service.bulk(args.operation, args.task_ids, data)
        for key, value in result.items():
            print(f"{key}: {value}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.backend:
        overrides['PERSISTENCE'] = args.backend
    if args.api_url:
        overrides['API_URL'] = args.api_url
    if args.store:
        overrides['LOCAL_STORE_PATH'] = args.store
    config = load_config(**overrides)

    setup_logging(config['LOG_LEVEL'], config['LOG_FILE'])

    if args.command == 'serve':
        return serve(config, args)

    try:
        service = create_service(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return run_command(service, args)
    except (ApiError, ApiClientError) as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
