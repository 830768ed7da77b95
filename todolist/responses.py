"""
统一响应格式与错误处理
"""
import sqlite3
import traceback

from flask import jsonify, request
from werkzeug.exceptions import HTTPException, NotFound

from todolist.errors import ApiError, MalformedIdError


def send_success(data, status_code=200, message=None):
    """成功响应 {success: true, data, message}"""
    body = {'success': True, 'data': data}
    if message:
        body['message'] = message
    return jsonify(body), status_code


def error_response(message, status_code=500, stack=None):
    """统一错误响应格式"""
    error = {'message': message, 'statusCode': status_code}
    if stack:
        error['stack'] = stack
    return jsonify({'success': False, 'error': error}), status_code


def to_api_error(err):
    """把各类异常映射为 ApiError"""
    if isinstance(err, ApiError):
        return err
    if isinstance(err, MalformedIdError):
        return ApiError(404, 'Resource not found')
    if isinstance(err, sqlite3.IntegrityError):
        return ApiError(400, 'Duplicate field value entered')
    if isinstance(err, NotFound):
        return ApiError(404, f'Route {request.path} not found')
    if isinstance(err, HTTPException):
        return ApiError(err.code or 500, err.description or err.name)
    return ApiError(500, 'Server Error', is_operational=False)


def register_error_handlers(app):
    """注册全局错误处理"""

    @app.errorhandler(Exception)
    def handle_error(err):
        api_error = to_api_error(err)
        query = request.query_string.decode('utf-8', 'replace')

        if api_error.status_code >= 500 or not api_error.is_operational:
            app.logger.exception("Error: %s %s?%s", request.method, request.path, query)
        else:
            app.logger.warning("Error %s: %s (%s %s?%s)", api_error.status_code, err,
                               request.method, request.path, query)

        stack = None
        if app.config.get('APP_ENV') != 'production':
            stack = ''.join(traceback.format_exception(type(err), err, err.__traceback__))

        return error_response(api_error.message, api_error.status_code, stack)
