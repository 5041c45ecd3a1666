# -*- coding: utf-8 -*-
"""
浏览器蜘蛛 - 用隐藏的内嵌 WebView 渲染受 JS/WAF 保护的页面并取回 HTML

流程：
1. 关闭已存在的 spider_worker 窗口
2. 注册一次性的 spider_response 监听
3. 以桌面 UA 打开窗口并注入就绪探测脚本
4. 等待脚本回传 HTML 或超时；无论成败都注销监听并销毁窗口
"""

import asyncio
import json
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from config.config import CONFIG, DESKTOP_USER_AGENT, print_lock
from core.exceptions import BrowserWindowError, SpiderError, SpiderTimeoutError

SPIDER_LABEL = 'spider_worker'
SPIDER_EVENT = 'spider_response'


@dataclass
class ReadinessProbe:
    """页面就绪判断：命中任一信号选择器后等待 grace_ms，否则 fallback_ms，最迟 hard_ms"""
    signals: List[str] = field(default_factory=list)
    grace_ms: int = 2000
    fallback_ms: int = 5000
    hard_ms: int = 10000


# 起点页面信号：移动端目录项、桌面目录链接、章节标题、书籍简介、正文区
QIDIAN_PROBE = ReadinessProbe(signals=[
    '.y-list__item',
    '.chapter-li-a',
    '.j_chapterName',
    '.book-intro',
    'main.content',
])


_INIT_SCRIPT_TEMPLATE = """
(() => {
    const SIGNALS = %(signals)s;
    let sent = false;
    const emitOnce = () => {
        if (sent) return;
        sent = true;
        let html = '';
        try {
            html = (document.documentElement && document.documentElement.outerHTML)
                || (document.body && document.body.outerHTML)
                || '';
        } catch (e) {
            console.error('[Spider] Error getting HTML:', e);
        }
        window.__spiderEmit('%(event)s', { html: html });
    };

    const scheduleSend = (delay) => setTimeout(emitOnce, delay);

    const checkAndSend = () => {
        const found = SIGNALS.some((sel) => {
            try { return !!document.querySelector(sel); } catch (e) { return false; }
        });
        scheduleSend(found ? %(grace_ms)d : %(fallback_ms)d);
    };

    if (document.readyState === 'complete' || document.readyState === 'interactive') {
        checkAndSend();
    } else {
        window.addEventListener('DOMContentLoaded', checkAndSend, { once: true });
    }

    scheduleSend(%(hard_ms)d);
})();
"""


def build_init_script(probe: ReadinessProbe, event: str = SPIDER_EVENT) -> str:
    """把就绪探测参数渲染成注入脚本；回传通过 window.__spiderEmit(event, payload)"""
    return _INIT_SCRIPT_TEMPLATE % {
        'signals': json.dumps(probe.signals),
        'event': event,
        'grace_ms': probe.grace_ms,
        'fallback_ms': probe.fallback_ms,
        'hard_ms': probe.hard_ms,
    }


class BrowserHost:
    """内嵌浏览器宿主能力：按标签管理窗口、事件监听、导航并注入初始化脚本"""

    def get_window(self, label: str):
        raise NotImplementedError

    def close_window(self, label: str):
        raise NotImplementedError

    def listen(self, event: str, callback: Callable[[dict], None]) -> int:
        raise NotImplementedError

    def unlisten(self, listener_id: int):
        raise NotImplementedError

    def open_window(self, label: str, url: str, user_agent: str, visible: bool,
                    init_script: str, on_closed: Optional[Callable[[], object]] = None):
        """打开窗口；on_closed 在窗口被外部关闭时回调"""
        raise NotImplementedError


class OneShotSlot:
    """一次性投递：宿主回调线程调用 deliver，重复投递被忽略"""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._lock = threading.Lock()
        self._taken = False
        self.future: asyncio.Future = loop.create_future()

    def _take(self) -> bool:
        with self._lock:
            if self._taken:
                return False
            self._taken = True
            return True

    def deliver(self, value) -> bool:
        if not self._take():
            return False
        self._loop.call_soon_threadsafe(_set_result_if_pending, self.future, value)
        return True

    def close(self) -> bool:
        """没有投递就关闭通道，等待方收到 Channel closed"""
        if not self._take():
            return False
        self._loop.call_soon_threadsafe(
            _set_exception_if_pending, self.future, SpiderError('Channel closed'))
        return True

    def seal(self):
        """等待结束后封口，之后的回传全部忽略"""
        self._take()


def _set_result_if_pending(fut: asyncio.Future, value):
    if not fut.done():
        fut.set_result(value)


def _set_exception_if_pending(fut: asyncio.Future, exc: BaseException):
    if not fut.done():
        fut.set_exception(exc)


async def fetch_via_window(host: BrowserHost, url: str, debug_visible: bool = False,
                           probe: Optional[ReadinessProbe] = None,
                           timeout: Optional[float] = None) -> str:
    """
    用浏览器蜘蛛加载页面并返回渲染后的 HTML

    Args:
        host: 浏览器宿主
        url: 目标地址
        debug_visible: 是否显示蜘蛛窗口（调试用）
        probe: 就绪探测参数，默认使用起点信号
        timeout: 外层超时（秒），默认 CONFIG['spider_timeout']

    Returns:
        页面 outerHTML；空字符串也视为成功，是否为 WAF 页由调用方判断

    Raises:
        BrowserWindowError: 窗口创建失败
        SpiderTimeoutError: 超时未收到回传
        SpiderError: 窗口在回传前被关闭（Channel closed）
    """
    if timeout is None:
        timeout = CONFIG.get('spider_timeout', 45)
    probe = probe or QIDIAN_PROBE

    if host.get_window(SPIDER_LABEL) is not None:
        host.close_window(SPIDER_LABEL)

    slot = OneShotSlot(asyncio.get_running_loop())

    def on_response(payload):
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError:
                return
        if isinstance(payload, dict) and isinstance(payload.get('html'), str):
            slot.deliver(payload['html'])

    listener_id = host.listen(SPIDER_EVENT, on_response)
    try:
        try:
            host.open_window(SPIDER_LABEL, url, DESKTOP_USER_AGENT, debug_visible,
                             build_init_script(probe), on_closed=slot.close)
        except Exception as e:
            raise BrowserWindowError(f"Failed to create window: {e}") from e

        try:
            return await asyncio.wait_for(slot.future, timeout)
        except asyncio.TimeoutError:
            raise SpiderTimeoutError('Timeout waiting for spider') from None
    finally:
        slot.seal()
        host.unlisten(listener_id)
        if host.get_window(SPIDER_LABEL) is not None:
            host.close_window(SPIDER_LABEL)


class _SpiderBridge:
    """暴露给页面的 js_api：window.pywebview.api.emit(event, payload)"""

    def __init__(self, host: 'PyWebviewHost'):
        self._host = host

    def emit(self, event, payload=None):
        self._host.dispatch(event, payload)


class PyWebviewHost(BrowserHost):
    """
    基于 pywebview 的宿主实现

    pywebview 的 UA 在 webview.start(user_agent=...) 时全局设定，
    main.py 以 DESKTOP_USER_AGENT 启动，因此这里不再按窗口设置 UA。
    探测脚本在 events.loaded 时注入而非文档开始时；页面始终不触发 loaded 时
    hard_ms 兜底不会启动，只能等外层 spider_timeout 超时。
    """

    _SHIM = (
        "window.__spiderEmit = function (event, payload) {"
        " window.pywebview.api.emit(event, payload); };"
    )

    def __init__(self):
        self._windows: Dict[str, object] = {}
        self._listeners: Dict[int, tuple] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def get_window(self, label: str):
        with self._lock:
            return self._windows.get(label)

    def close_window(self, label: str):
        with self._lock:
            window = self._windows.pop(label, None)
        if window is not None:
            try:
                window.destroy()
            except Exception as e:
                with print_lock:
                    print(f"[Spider] 关闭窗口失败: {e}")

    def listen(self, event: str, callback) -> int:
        with self._lock:
            listener_id = self._next_id
            self._next_id += 1
            self._listeners[listener_id] = (event, callback)
        return listener_id

    def unlisten(self, listener_id: int):
        with self._lock:
            self._listeners.pop(listener_id, None)

    def dispatch(self, event: str, payload):
        with self._lock:
            callbacks = [cb for ev, cb in self._listeners.values() if ev == event]
        for cb in callbacks:
            cb(payload)

    def open_window(self, label: str, url: str, user_agent: str, visible: bool,
                    init_script: str, on_closed: Optional[Callable[[], object]] = None):
        import webview

        window = webview.create_window(
            title='Spider Worker',
            url=url,
            width=1024,
            height=768,
            hidden=not visible,
            js_api=_SpiderBridge(self),
        )
        if window is None:
            raise BrowserWindowError('webview.create_window returned None')

        script = self._SHIM + init_script

        def on_loaded():
            try:
                window.evaluate_js(script)
            except Exception as e:
                with print_lock:
                    print(f"[Spider] 注入脚本失败: {e}")

        def on_window_closed():
            with self._lock:
                if self._windows.get(label) is window:
                    self._windows.pop(label, None)
            if on_closed is not None:
                on_closed()

        window.events.loaded += on_loaded
        window.events.closed += on_window_closed
        with self._lock:
            self._windows[label] = window
        return window
