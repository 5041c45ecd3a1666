# -*- coding: utf-8 -*-
"""
事件总线 - 后台任务向 UI 推送事件（download-progress / ai-analysis / ai-analysis-status）

事件先缓存，由 UI 轮询 GET /api/events 取走；同时转发给已注册的监听函数。
"""

import threading
import time
from typing import Callable, Dict, List

from config.config import print_lock

MAX_BUFFERED_EVENTS = 500


class EventBus:
    """线程安全的发送即忘事件总线"""

    def __init__(self, max_buffer: int = MAX_BUFFERED_EVENTS):
        self._lock = threading.Lock()
        self._events: List[Dict] = []
        self._listeners: List[Callable[[str, dict], None]] = []
        self._max_buffer = max_buffer

    def emit(self, event: str, payload: dict):
        record = {'event': event, 'payload': payload, 'timestamp': time.time()}
        with self._lock:
            self._events.append(record)
            if len(self._events) > self._max_buffer:
                self._events = self._events[-(self._max_buffer // 2):]
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event, payload)
            except Exception as e:
                with print_lock:
                    print(f"[EventBus] 监听函数出错 ({event}): {e}")

    def __call__(self, event: str, payload: dict):
        self.emit(event, payload)

    def drain(self) -> List[Dict]:
        """取走并清空缓存的事件"""
        with self._lock:
            events = self._events
            self._events = []
        return events

    def subscribe(self, listener: Callable[[str, dict], None]):
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[str, dict], None]):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
