# -*- coding: utf-8 -*-
"""
测试公共夹具：假 HTTP 会话、假浏览器宿主、事件记录器
"""

import threading

import pytest

from config.config import CONFIG
from core.browser_spider import SPIDER_EVENT, BrowserHost
from core.spiders import SpiderContext


class FakeResponse:
    def __init__(self, status=200, body=''):
        self.status = status
        self._body = body

    async def text(self, errors='strict'):
        return self._body


class _RequestContext:
    def __init__(self, result):
        self._result = result

    async def __aenter__(self):
        if isinstance(self._result, Exception):
            raise self._result
        return self._result

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    按 URL 返回预设响应的 aiohttp 会话替身

    routes 的值可以是：str（200 + 正文）、(status, body)、异常实例，
    或以上值组成的列表（依次返回，最后一个重复使用）。未配置的 URL 返回 404。
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.closed = False

    def _next(self, url):
        route = self.routes.get(url, (404, 'not found'))
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            return route
        if isinstance(route, tuple):
            return FakeResponse(*route)
        return FakeResponse(200, route)

    def get(self, url, headers=None):
        self.calls.append((url, headers or {}))
        return _RequestContext(self._next(url))

    def urls(self):
        return [url for url, _ in self.calls]

    async def close(self):
        self.closed = True


class FakeBrowserHost(BrowserHost):
    """
    浏览器宿主替身：open_window 后在另一个线程回传 pages[url]

    pages 的值为 str 时回传一次 {'html': str}；为列表时原样依次回传每一项（用于重复投递）；
    URL 未配置时模拟窗口被关闭。
    """

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.windows = {}
        self.listeners = {}
        self.opened = []
        self.closed = []
        self.fail_open = False
        self.silent = False
        self._next_id = 1

    def get_window(self, label):
        return self.windows.get(label)

    def close_window(self, label):
        self.closed.append(label)
        self.windows.pop(label, None)

    def listen(self, event, callback):
        listener_id = self._next_id
        self._next_id += 1
        self.listeners[listener_id] = (event, callback)
        return listener_id

    def unlisten(self, listener_id):
        self.listeners.pop(listener_id, None)

    def _dispatch(self, payload):
        for event, callback in list(self.listeners.values()):
            if event == SPIDER_EVENT:
                callback(payload)

    def open_window(self, label, url, user_agent, visible, init_script, on_closed=None):
        if self.fail_open:
            raise RuntimeError('no display')
        self.opened.append({'label': label, 'url': url, 'user_agent': user_agent,
                            'visible': visible, 'init_script': init_script})
        self.windows[label] = object()

        if self.silent:
            return
        page = self.pages.get(url)

        def worker():
            if page is None:
                if on_closed is not None:
                    on_closed()
                return
            payloads = page if isinstance(page, list) else [{'html': page}]
            for item in payloads:
                self._dispatch(item)

        threading.Thread(target=worker, daemon=True).start()

    def opened_urls(self):
        return [w['url'] for w in self.opened]


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    def payloads(self, event='download-progress'):
        return [p for e, p in self.events if e == event]

    def with_status(self, status, event='download-progress'):
        return [p['message'] for p in self.payloads(event) if p.get('status') == status]


@pytest.fixture(autouse=True)
def fast_config(monkeypatch):
    monkeypatch.setitem(CONFIG, 'chapter_delay', 0)
    monkeypatch.setitem(CONFIG, 'retry_delay', 0)
    monkeypatch.setitem(CONFIG, 'save_debug_html', False)


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def log_lines():
    return []


@pytest.fixture
def make_context(log_lines):
    def _make(session=None, browser=None):
        return SpiderContext(session=session or FakeSession(), browser=browser,
                             log=log_lines.append, save_debug_html=False)
    return _make


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / 'workspace'
    root.mkdir()
    return root
