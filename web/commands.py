# -*- coding: utf-8 -*-
"""
UI 命令 - 与界面约定的命令名和参数一一对应

耗时任务（下载、AI 分析）提交到 TaskRunner 后立即返回，进度通过 EventBus 推送；
其余命令同步返回结果，失败抛出 SpiderError 子类。
"""

from typing import List, Optional

from config.config import CONFIG, print_lock
from core import ai_client, file_utils
from core.browser_spider import BrowserHost
from core.exceptions import InputError
from core.models import AiConfig
from core.novel_downloader import run_rank_batch, run_single_download
from core.prompts import AUTO_ANALYSIS_PROMPT, resolve_prompt
from core.spiders import parse_platform
from utils import app_log
from .event_bus import EventBus
from .task_runner import TaskRunner


_BOOL_STRINGS = {'true': True, '1': True, 'false': False, '0': False, '': False}


def _to_int(value, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InputError(f"参数 {name} 必须是整数") from None


def _to_bool(value, name: str) -> bool:
    """JSON 布尔值；兼容 "true"/"false"、0/1 与缺省"""
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _BOOL_STRINGS:
        return _BOOL_STRINGS[value.strip().lower()]
    raise InputError(f"参数 {name} 必须是布尔值")


class CommandService:
    """命令处理器，持有事件总线、后台循环与浏览器宿主"""

    def __init__(self, bus: EventBus, runner: TaskRunner, browser: Optional[BrowserHost] = None):
        self.bus = bus
        self.runner = runner
        self.browser = browser

    # ---------- 下载 ----------

    def start_download(self, url: str, count, dir_name: str, platform: str,
                       debug_spider_visible: bool = False, workspace_root: Optional[str] = None) -> str:
        if not url or not dir_name:
            raise InputError('请输入小说链接')
        platform = parse_platform(platform).value
        count = _to_int(count, 'count')

        self.runner.spawn(run_single_download(
            url, count, dir_name, platform, self.bus.emit,
            browser=self.browser,
            debug_spider_visible=_to_bool(debug_spider_visible, 'debug_spider_visible'),
            workspace_root=workspace_root or None,
        ))
        return 'Task started'

    def scan_and_download_rank(self, rank_url: str, max_novels, count_per_novel, dir_name: str,
                               platform: str, debug_spider_visible: bool = False,
                               workspace_root: Optional[str] = None) -> str:
        if not rank_url or not dir_name:
            raise InputError('请输入榜单链接')
        platform = parse_platform(platform).value

        self.runner.spawn(run_rank_batch(
            rank_url,
            _to_int(max_novels, 'max_novels'),
            _to_int(count_per_novel, 'count_per_novel'),
            dir_name, platform, self.bus.emit,
            browser=self.browser,
            debug_spider_visible=_to_bool(debug_spider_visible, 'debug_spider_visible'),
            workspace_root=workspace_root or None,
        ))
        return 'Batch task started'

    # ---------- AI ----------

    def start_ai_analysis(self, api_base: str, api_key: str, model: str, prompt: str,
                          content: str, response_json: Optional[bool] = None) -> str:
        config = AiConfig(api_base=api_base, api_key=api_key, model=model)
        force_json = _to_bool(response_json, 'response_json')
        self.runner.spawn(ai_client.run_ai_analysis(
            config, resolve_prompt(prompt), content or '', force_json, self.bus.emit))
        return 'Analysis started'

    def fetch_ai_models(self, api_base: str, api_key: str) -> List[str]:
        config = AiConfig(api_base=api_base, api_key=api_key)
        return self.runner.run(ai_client.fetch_models(config),
                               timeout=CONFIG.get('request_timeout', 30) + 5)

    def get_auto_analysis_prompt(self) -> str:
        return AUTO_ANALYSIS_PROMPT

    # ---------- 文件 ----------

    def update_novel_metadata(self, dir_name: str, novel_name: str, metadata: dict) -> str:
        with print_lock:
            print(f"update_novel_metadata: {novel_name}")
        return file_utils.update_novel_metadata(dir_name, novel_name, metadata)

    def get_file_tree(self, dir_name: str) -> List[dict]:
        return [node.to_dict() for node in file_utils.build_file_tree(dir_name)]

    def get_file_content(self, dir: str, filename: str) -> str:
        return file_utils.read_file_content(dir, filename)

    def delete_novel(self, dir_name: str, novel_name: str, workspace_root: Optional[str] = None) -> str:
        return file_utils.delete_novel(dir_name, novel_name, workspace_root or None)

    def delete_chapter(self, dir_name: str, novel_name: str, chapter_file: str,
                       workspace_root: Optional[str] = None) -> str:
        return file_utils.delete_chapter(dir_name, novel_name, chapter_file, workspace_root or None)

    def export_chapter(self, novel_title: str, chapter_index, content: str,
                       workspace_root: Optional[str] = None) -> str:
        return file_utils.export_chapter(novel_title, _to_int(chapter_index, 'chapter_index'),
                                         content, workspace_root or None)

    def ensure_workspace_dirs(self, workspace_root: str) -> str:
        return file_utils.ensure_workspace_dirs(workspace_root)

    # ---------- 日志 ----------

    def read_log_file(self, workspace_root: Optional[str] = None) -> str:
        return app_log.read_log(workspace_root or None)

    def clear_log(self, workspace_root: Optional[str] = None) -> str:
        app_log.clear_log(workspace_root or None)
        return '日志已清空'
