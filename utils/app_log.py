# -*- coding: utf-8 -*-
"""
应用日志 - 控制台输出 + 工作区日志文件追加
日志文件位于 <workspace_root>/logs/app.log，未指定工作区时写入项目根目录 app.log
"""

import os
from datetime import datetime
from typing import Optional

from config.config import print_lock

LOG_DIR_NAME = 'logs'
LOG_FILE_NAME = 'app.log'
EMPTY_LOG_TEXT = '暂无日志'


def get_project_root() -> str:
    """项目根目录（本文件上两级）"""
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def get_log_path(workspace_root: Optional[str] = None) -> str:
    if workspace_root:
        return os.path.join(workspace_root, LOG_DIR_NAME, LOG_FILE_NAME)
    return os.path.join(get_project_root(), LOG_FILE_NAME)


def log_to_file(msg: str, workspace_root: Optional[str] = None, echo: bool = True):
    """追加一行带时间戳的日志；写入失败只打印，不向上抛出"""
    if echo:
        with print_lock:
            print(msg)

    log_path = get_log_path(workspace_root)
    timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    try:
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        with open(log_path, 'a', encoding='utf-8') as f:
            f.write(f"[{timestamp}] {msg}\n")
    except OSError as e:
        with print_lock:
            print(f"写入日志失败: {e}")


def read_log(workspace_root: Optional[str] = None) -> str:
    log_path = get_log_path(workspace_root)
    if not os.path.exists(log_path):
        return EMPTY_LOG_TEXT
    with open(log_path, 'r', encoding='utf-8') as f:
        return f.read()


def clear_log(workspace_root: Optional[str] = None):
    log_path = get_log_path(workspace_root)
    os.makedirs(os.path.dirname(log_path), exist_ok=True)
    with open(log_path, 'w', encoding='utf-8') as f:
        f.write('')


class WorkspaceLogger:
    """绑定工作区根目录的日志函数，传给蜘蛛与流水线使用"""

    def __init__(self, workspace_root: Optional[str] = None, echo: bool = True):
        self.workspace_root = workspace_root
        self.echo = echo

    def __call__(self, msg: str):
        log_to_file(msg, self.workspace_root, echo=self.echo)
