# -*- coding: utf-8 -*-
"""
平台蜘蛛公共部分 - 上下文、HTTP 请求、HTML 解析与链接规范化
"""

import asyncio
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import aiohttp
from bs4 import BeautifulSoup

from config.config import CONFIG, get_headers
from core.browser_spider import BrowserHost, ReadinessProbe, fetch_via_window
from core.exceptions import InputError, TransportError
from core.models import ChapterRef, NovelMetadata
from utils.app_log import WorkspaceLogger, get_project_root


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or '', 'lxml')


def element_text(element) -> str:
    return element.get_text().strip() if element is not None else ''


def normalize_url(href: str, host: str) -> str:
    """// 开头补 https:，/ 开头拼接 host，其余原样返回"""
    if href.startswith('//'):
        return 'https:' + href
    if href.startswith('/'):
        return host.rstrip('/') + href
    return href


def dedupe_keep_order(items: Iterable[str]) -> List[str]:
    """去重并保留首次出现的顺序（榜单顺序有意义，不能排序）"""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


@dataclass
class SpiderContext:
    """一次下载任务内蜘蛛共享的资源"""
    session: aiohttp.ClientSession
    browser: Optional[BrowserHost] = None
    debug_visible: bool = False
    log: Callable[[str], None] = field(default_factory=WorkspaceLogger)
    save_debug_html: bool = field(default_factory=lambda: bool(CONFIG.get('save_debug_html')))

    def dump_html(self, name: str, html: str):
        """调试用：把抓到的页面保存到 <project>/debug/<name>"""
        if not self.save_debug_html:
            return
        debug_dir = os.path.join(get_project_root(), 'debug')
        path = os.path.join(debug_dir, name)
        try:
            os.makedirs(debug_dir, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(html)
            self.log(f"已保存调试页面 {path} ({len(html)} bytes)")
        except OSError as e:
            self.log(f"保存调试页面失败 {path}: {e}")


class BaseSpider:
    """平台蜘蛛能力集：榜单、元数据、章节目录、章节正文"""

    name = ''
    # 目录开头需要丢弃的章节数
    SKIP_LEADING = 0

    def __init__(self, context: SpiderContext):
        self.ctx = context

    def log(self, msg: str):
        self.ctx.log(msg)

    def chapter_url(self, href: str) -> str:
        return href

    def select_batch(self, chapters: List[ChapterRef], count: int) -> List[ChapterRef]:
        """按平台策略截取待下载章节"""
        start = self.SKIP_LEADING
        return list(chapters[start:start + max(count, 0)])

    async def fetch_text(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        """GET 页面文本；连接失败、超时与非 2xx 都转成 TransportError"""
        if not url:
            raise InputError('请输入小说链接')
        try:
            async with self.ctx.session.get(url, headers=headers or get_headers()) as response:
                if not 200 <= response.status < 300:
                    raise TransportError(f"HTTP {response.status}: {url}")
                return await response.text(errors='replace')
        except aiohttp.ClientError as e:
            raise TransportError(f"请求失败: {e}") from e
        except asyncio.TimeoutError:
            raise TransportError(f"请求超时: {url}") from None

    async def render(self, url: str, probe: Optional[ReadinessProbe] = None) -> str:
        """通过浏览器蜘蛛渲染页面"""
        if self.ctx.browser is None:
            raise InputError(f"{self.name} 需要浏览器蜘蛛，但未提供浏览器宿主")
        return await fetch_via_window(self.ctx.browser, url, self.ctx.debug_visible, probe)

    async def fetch_rank_list(self, url: str) -> List[str]:
        raise NotImplementedError

    async def fetch_novel_metadata(self, url: str) -> NovelMetadata:
        raise NotImplementedError

    async def fetch_chapter_list(self, url: str) -> List[ChapterRef]:
        raise NotImplementedError

    async def download_chapter(self, url: str) -> Tuple[str, str]:
        raise NotImplementedError
