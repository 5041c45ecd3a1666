# -*- coding: utf-8 -*-
"""
配置管理模块 - 包含版本信息、全局配置
默认值写在代码中，本地偏好文件可覆盖任意键
"""

__version__ = "0.3.0"
__author__ = "Novel Spider Studio"
__description__ = "Rank scanning, chapter downloading and AI analysis for web novels"

import os
import json
import random
import tempfile
import threading
from typing import Dict

from fake_useragent import UserAgent

_LOCAL_CONFIG_FILE = os.path.join(tempfile.gettempdir(), 'novel_spider_config.json')

# 浏览器蜘蛛使用的桌面 UA（macOS Chrome）
DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# 起点移动端兜底请求使用的 UA
MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)

DEFAULT_CONFIG = {
    "request_timeout": 30,
    "batch_request_timeout": 10,
    "spider_timeout": 45,
    "chapter_retries": 3,
    "retry_delay": 0.5,
    "chapter_delay": 0.2,
    "save_debug_html": False,
    "fanqie_host": "https://fanqienovel.com",
    "qidian_host": "https://www.qidian.com",
    "qidian_mobile_host": "https://m.qidian.com",
    "desktop_user_agent": DESKTOP_USER_AGENT,
    "mobile_user_agent": MOBILE_USER_AGENT,
    "ui_url": "",
}


def _load_local_pref() -> Dict:
    try:
        if os.path.exists(_LOCAL_CONFIG_FILE):
            with open(_LOCAL_CONFIG_FILE, 'r', encoding='utf-8') as f:
                data = json.load(f)
                return data if isinstance(data, dict) else {}
    except (OSError, ValueError):
        pass
    return {}


def load_config() -> Dict:
    """加载配置：默认值 + 本地偏好覆盖（只接受已知键）"""
    config = dict(DEFAULT_CONFIG)
    local_pref = _load_local_pref()
    for key, value in local_pref.items():
        if key in config:
            config[key] = value
    return config


CONFIG = load_config()

print_lock = threading.Lock()

_UA_SINGLETON = None
_UA_LOCK = threading.Lock()


def _get_ua():
    global _UA_SINGLETON
    if _UA_SINGLETON is None:
        with _UA_LOCK:
            if _UA_SINGLETON is None:
                try:
                    _UA_SINGLETON = UserAgent()
                except Exception:
                    _UA_SINGLETON = None
    return _UA_SINGLETON


def get_headers() -> Dict[str, str]:
    """通用 HTML 请求头，UA 由 fake_useragent 随机生成"""
    user_agent = None
    try:
        ua = _get_ua()
        if ua is not None:
            user_agent = ua.chrome if random.choice(["chrome", "edge"]) == "chrome" else ua.edge
    except Exception:
        user_agent = None

    if not user_agent:
        user_agent = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "zh-CN,zh;q=0.9,en-US;q=0.8,en;q=0.7",
    }


__all__ = [
    "CONFIG",
    "DEFAULT_CONFIG",
    "DESKTOP_USER_AGENT",
    "MOBILE_USER_AGENT",
    "load_config",
    "print_lock",
    "get_headers",
    "__version__",
    "__author__",
    "__description__",
]
