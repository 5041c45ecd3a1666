# -*- coding: utf-8 -*-
"""
主入口 - 启动本地命令服务并用 PyWebView 显示界面

浏览器蜘蛛窗口与界面窗口共用同一个 pywebview 运行时，
UA 在 webview.start 时全局设为桌面 UA。
"""

import secrets
import socket
import sys
import threading
import time
from urllib.parse import urlencode

import requests

from config.config import CONFIG, DESKTOP_USER_AGENT, __version__, print_lock


def find_free_port():
    """查找一个可用的随机端口"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


def run_flask_app(port, access_token):
    """在后台启动 Flask 应用"""
    from web.web_app import app, set_access_token

    set_access_token(access_token)
    app.run(
        host='127.0.0.1',
        port=port,
        debug=False,
        use_reloader=False,
        threaded=True
    )


def wait_for_server(port, access_token, max_retries=30) -> bool:
    url = f'http://127.0.0.1:{port}/api/health?token={access_token}'
    for _ in range(max_retries):
        try:
            response = requests.get(url, timeout=1)
            if response.status_code == 200:
                return True
        except requests.RequestException:
            pass
        time.sleep(0.5)
    return False


def build_ui_url(port, access_token) -> str:
    """界面地址：配置了 ui_url 时附带命令服务地址与令牌，否则直接打开命令服务首页"""
    api_base = f'http://127.0.0.1:{port}'
    ui_url = CONFIG.get('ui_url') or ''
    if not ui_url:
        return f'{api_base}/?token={access_token}'
    sep = '&' if '?' in ui_url else '?'
    return ui_url + sep + urlencode({'api': api_base, 'token': access_token})


def main():
    """主函数"""
    print("=" * 50)
    print(f"Novel Spider Studio v{__version__}")
    print("=" * 50)

    try:
        import webview
    except ImportError:
        print("缺少依赖 pywebview，请先执行: pip install pywebview")
        sys.exit(1)

    from core.browser_spider import PyWebviewHost
    from web.web_app import set_browser_host, task_runner

    access_token = secrets.token_urlsafe(32)
    port = find_free_port()

    set_browser_host(PyWebviewHost())
    task_runner.start()

    flask_thread = threading.Thread(target=run_flask_app, args=(port, access_token), daemon=True)
    flask_thread.start()

    print("等待本地服务启动...")
    if not wait_for_server(port, access_token):
        print("本地服务启动超时")
        sys.exit(1)

    webview.create_window(
        title='Novel Spider Studio',
        url=build_ui_url(port, access_token),
        width=1200,
        height=800,
        min_size=(1000, 700),
    )

    try:
        webview.start(user_agent=CONFIG.get('desktop_user_agent', DESKTOP_USER_AGENT))
    finally:
        task_runner.stop()
        with print_lock:
            print("应用已关闭")


if __name__ == '__main__':
    main()
