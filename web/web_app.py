# -*- coding: utf-8 -*-
"""
Web应用程序 - Flask 本地命令服务，供内嵌 UI 调用
"""

import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from config.config import __version__ as APP_VERSION
from .command_routes import init_command_routes
from .commands import CommandService
from .event_bus import EventBus
from .task_runner import TaskRunner

# 禁用Flask默认日志
log = logging.getLogger('werkzeug')
log.setLevel(logging.ERROR)

app = Flask(__name__)
CORS(app)

# 访问令牌（由main.py在启动时设置）
ACCESS_TOKEN = None

event_bus = EventBus()
task_runner = TaskRunner()
command_service = CommandService(event_bus, task_runner)


def set_access_token(token):
    """设置访问令牌"""
    global ACCESS_TOKEN
    ACCESS_TOKEN = token


def set_browser_host(host):
    """设置浏览器蜘蛛宿主（main.py 创建 PyWebviewHost 后注入）"""
    command_service.browser = host


# ===================== 访问控制中间件 =====================

@app.before_request
def check_access():
    """请求前验证访问令牌"""
    if request.method == 'OPTIONS':
        return None

    if ACCESS_TOKEN is not None:
        token = request.args.get('token') or request.headers.get('X-Access-Token')
        if token != ACCESS_TOKEN:
            return jsonify({'error': 'Forbidden'}), 403

    return None

# ===================== 主路由 =====================

@app.route('/')
def index():
    return jsonify({'name': 'Novel Spider Studio', 'version': APP_VERSION})

@app.route('/api/version', methods=['GET'])
def api_version():
    """获取当前版本号"""
    return jsonify({'success': True, 'version': APP_VERSION})

@app.route('/api/health', methods=['GET'])
def api_health():
    """健康检查 API"""
    return jsonify({'status': 'ready', 'success': True})


init_command_routes(app, command_service)


if __name__ == '__main__':
    print('Web服务器已启动')
    app.run(host='127.0.0.1', port=5000, debug=False)
