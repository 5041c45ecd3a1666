# -*- coding: utf-8 -*-
"""
后台任务执行器 - 在守护线程上运行独立的 asyncio 事件循环

下载与 AI 分析都在这个循环上串行调度；Flask 请求线程通过 spawn / run 提交协程。
"""

import asyncio
import concurrent.futures
import threading
from typing import Optional


class TaskRunner:

    def __init__(self):
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        self.start()
        return self._loop

    def start(self):
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_loop, name='task-runner', daemon=True)
            self._thread.start()

    def _run_loop(self):
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def spawn(self, coro) -> concurrent.futures.Future:
        """提交协程后立即返回，不等待结果"""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro, timeout: Optional[float] = None):
        """提交协程并阻塞等待结果，协程内的异常原样抛出"""
        future = self.spawn(coro)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self):
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=5)
        loop.close()
