# -*- coding: utf-8 -*-
"""
下载流水线 - 单本小说下载、榜单批量下载

单本流程: start -> metadata -> list -> downloading -> complete | error
批量流程: 抓取榜单 -> 按榜单顺序逐本执行单本流程，单本失败不影响后续
"""

import asyncio
import os
from typing import Callable, List, Optional

import aiohttp

from config.config import CONFIG
from core.browser_spider import BrowserHost
from core.exceptions import NovelDownloadError, SpiderError, StorageError
from core.file_utils import chapter_filename, ensure_novel_dir, write_chapter, write_metadata
from core.models import (
    ChapterRef,
    DownloadResult,
    ProgressPayload,
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_RUNNING,
    STATUS_SKIPPED,
)
from core.spiders import BaseSpider, SpiderContext, get_spider
from utils.app_log import WorkspaceLogger

PROGRESS_EVENT = 'download-progress'

EventEmitter = Callable[[str, dict], None]

STAGE_START = 'start'
STAGE_METADATA = 'metadata'
STAGE_LIST = 'list'
STAGE_DOWNLOADING = 'downloading'

_STAGE_FAILURES = {
    STAGE_START: '初始化失败',
    STAGE_METADATA: '获取元数据失败',
    STAGE_LIST: '获取章节列表失败',
    STAGE_DOWNLOADING: '下载失败',
}


def emit_progress(emit: EventEmitter, message: str, status: str = STATUS_RUNNING):
    emit(PROGRESS_EVENT, ProgressPayload(message, status).to_dict())


def make_session(timeout: float) -> aiohttp.ClientSession:
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout))


async def _download_one(spider: BaseSpider, chapter: ChapterRef, chapter_path: str) -> bool:
    """带重试下载单章并落盘；重试耗尽返回 False"""
    url = spider.chapter_url(chapter.href)
    retries = int(CONFIG.get('chapter_retries', 3))
    retry_delay = float(CONFIG.get('retry_delay', 0.5))

    for attempt in range(1, retries + 1):
        try:
            _, content = await spider.download_chapter(url)
        except SpiderError as e:
            spider.log(f"下载章节失败 ({attempt}/{retries}) {chapter.title}: {e}")
            await asyncio.sleep(retry_delay)
            continue
        # 写盘失败属于文件系统错误，直接终止本书
        write_chapter(chapter_path, chapter.title, url, content)
        return True
    return False


async def process_novel_download(spider: BaseSpider, url: str, chapter_count: int, base_dir: str,
                                 emit: EventEmitter, is_batch: bool = False) -> DownloadResult:
    """
    下载单本小说的前 N 章

    Args:
        spider: 平台蜘蛛
        url: 小说链接
        chapter_count: 请求下载的章节数
        base_dir: 下载根目录，小说保存在 <base_dir>/<书名>/
        emit: 事件发送函数 emit(event, payload)
        is_batch: 批量模式下不发送逐章进度

    Returns:
        DownloadResult 统计

    Raises:
        NovelDownloadError: 元数据、目录或写盘失败；错误事件已发出
    """
    log = spider.log
    stage = STAGE_START
    try:
        stage = STAGE_METADATA
        msg = f"正在获取元数据: {url}"
        log(msg)
        emit_progress(emit, msg)
        metadata = await spider.fetch_novel_metadata(url)

        safe_title = metadata.safe_title
        novel_dir = ensure_novel_dir(base_dir, metadata.title)
        write_metadata(novel_dir, metadata)

        stage = STAGE_LIST
        emit_progress(emit, f"正在获取章节列表 [{safe_title}]...")
        chapters = await spider.fetch_chapter_list(url)
        batch = spider.select_batch(chapters, chapter_count)

        msg = f"准备下载 {len(batch)} 章 (总请求: {chapter_count})..."
        log(msg)
        emit_progress(emit, msg)
        if not batch:
            log('警告: 待下载章节数为 0，任务提前结束。')

        stage = STAGE_DOWNLOADING
        result = DownloadResult(title=safe_title)
        chapter_delay = float(CONFIG.get('chapter_delay', 0.2))

        for i, chapter in enumerate(batch):
            chapter_path = os.path.join(novel_dir, chapter_filename(i + 1))

            if os.path.exists(chapter_path):
                msg = f"跳过已存在章节 [{safe_title}] - {chapter.title}"
                log(msg)
                if not is_batch:
                    emit_progress(emit, msg, STATUS_SKIPPED)
                result.skipped += 1
                continue

            if not is_batch:
                emit_progress(emit, f"下载 [{safe_title}] - {chapter.title}")

            if await _download_one(spider, chapter, chapter_path):
                result.downloaded += 1
            else:
                result.failed += 1
                result.failed_chapters.append(chapter.title)
                log(f"章节下载失败，已放弃: [{safe_title}] - {chapter.title}")

            await asyncio.sleep(chapter_delay)

    except SpiderError as e:
        label = '文件写入失败' if isinstance(e, StorageError) else _STAGE_FAILURES[stage]
        msg = f"{label}: {e}"
        log(msg)
        emit_progress(emit, msg, STATUS_ERROR)
        raise NovelDownloadError(msg) from e

    summary = f"《{safe_title}》下载统计: 新下载 {result.downloaded} 章, 跳过已存在 {result.skipped} 章"
    if result.failed:
        summary += f", 失败 {result.failed} 章"
    log(summary)
    emit_progress(emit, summary)
    return result


async def run_single_download(url: str, count: int, dir_name: str, platform: str, emit: EventEmitter,
                              browser: Optional[BrowserHost] = None, debug_spider_visible: bool = False,
                              workspace_root: Optional[str] = None,
                              session: Optional[aiohttp.ClientSession] = None) -> Optional[DownloadResult]:
    """start_download 的后台任务：失败只通过事件和日志报告，不向外抛出"""
    log = WorkspaceLogger(workspace_root)
    own_session = session is None
    if own_session:
        session = make_session(CONFIG.get('request_timeout', 30))

    try:
        os.makedirs(dir_name, exist_ok=True)
        context = SpiderContext(session=session, browser=browser,
                                debug_visible=debug_spider_visible, log=log)
        spider = get_spider(platform, context)
        result = await process_novel_download(spider, url, count, dir_name, emit)
    except NovelDownloadError as e:
        log(f"Error: {e}")
        return None
    except Exception as e:
        msg = f"Error: {e}"
        log(msg)
        emit_progress(emit, msg, STATUS_ERROR)
        return None
    finally:
        if own_session:
            await session.close()

    msg = f"《{result.title}》下载完成!"
    log(msg)
    emit_progress(emit, msg, STATUS_COMPLETED)
    return result


async def run_rank_batch(rank_url: str, max_novels: int, count_per_novel: int, dir_name: str,
                         platform: str, emit: EventEmitter, browser: Optional[BrowserHost] = None,
                         debug_spider_visible: bool = False, workspace_root: Optional[str] = None,
                         session: Optional[aiohttp.ClientSession] = None) -> List[DownloadResult]:
    """scan_and_download_rank 的后台任务：按榜单顺序逐本下载"""
    log = WorkspaceLogger(workspace_root)
    emit_progress(emit, '开始分析榜单...')

    own_session = session is None
    if own_session:
        session = make_session(CONFIG.get('batch_request_timeout', 10))

    results = []
    try:
        context = SpiderContext(session=session, browser=browser,
                                debug_visible=debug_spider_visible, log=log)
        try:
            spider = get_spider(platform, context)
            links = await spider.fetch_rank_list(rank_url)
        except SpiderError as e:
            msg = f"榜单获取失败: {e}"
            log(msg)
            emit_progress(emit, msg, STATUS_ERROR)
            return results

        targets = links[:max(max_novels, 0)]
        total = len(targets)
        emit_progress(emit, f"分析完成，准备抓取前 {total} 本小说...")

        for idx, url in enumerate(targets):
            emit_progress(emit, f"正在处理 [{idx + 1}/{total}] 正在解析...")
            try:
                result = await process_novel_download(spider, url, count_per_novel, dir_name,
                                                      emit, is_batch=True)
            except NovelDownloadError as e:
                log(f"Skipped one: {e}")
                continue
            except Exception as e:
                msg = f"Skipped one: {e}"
                log(msg)
                emit_progress(emit, msg, STATUS_ERROR)
                continue

            results.append(result)
            msg = f"《{result.title}》下载完成!"
            log(msg)
            emit_progress(emit, msg, STATUS_COMPLETED)
    finally:
        if own_session:
            await session.close()

    emit_progress(emit, '榜单扫描全部完成!', STATUS_COMPLETED)
    return results
