# -*- coding: utf-8 -*-
"""
起点中文网蜘蛛 - 所有页面经浏览器蜘蛛渲染以通过 WAF
元数据在浏览器蜘蛛失败或被 WAF 拦截时回退到移动端纯 HTTP 请求
"""

import time
from typing import List, Tuple
from urllib.parse import urlparse

from config.config import CONFIG, MOBILE_USER_AGENT
from core.browser_spider import QIDIAN_PROBE
from core.exceptions import InputError, ParseError, SpiderError, WafBlockedError
from core.models import ChapterRef, NovelMetadata, UNKNOWN_WORD_COUNT
from utils.book_id import extract_qidian_book_id
from .base import BaseSpider, dedupe_keep_order, element_text, make_soup, normalize_url

# 桌面榜单 / 新版桌面榜单 / 通用榜单布局（不匹配作者链接）
RANK_SELECTOR = (
    '#rank-view-list .book-mid-info h2 a, '
    '.book-img-text .book-mid-info h2 a, '
    '.rank-list a.book-layout'
)
CATALOG_SELECTOR = ".y-list__item a, a[class*='chapterItem']"
CONTENT_SELECTOR = 'main.content, .read-content, .main-text-wrap, .j_readContent, #reader-content'
CHAPTER_TITLE_SELECTOR = '.j_chapterName, .text-head h3, h1, .chapter-name'

WAF_MARKERS = ('Just a moment', 'Security checking')
UNKNOWN_TITLE = 'Unknown Title'


def is_waf_title(title: str) -> bool:
    return any(marker in (title or '') for marker in WAF_MARKERS)


class QidianSpider(BaseSpider):
    name = 'qidian'

    @property
    def host(self) -> str:
        return CONFIG.get('qidian_host', 'https://www.qidian.com')

    @property
    def mobile_host(self) -> str:
        return CONFIG.get('qidian_mobile_host', 'https://m.qidian.com')

    def _is_mobile_url(self, url: str) -> bool:
        return urlparse(self.mobile_host).netloc in (url or '')

    def to_desktop_url(self, url: str) -> str:
        """移动端章节链接改写为桌面端"""
        mobile_domain = urlparse(self.mobile_host).netloc
        desktop_domain = urlparse(self.host).netloc
        return url.replace(mobile_domain, desktop_domain)

    async def fetch_rank_list(self, url: str) -> List[str]:
        self.log(f"启动浏览器蜘蛛抓取榜单: {url}")
        html = await self.render(url, QIDIAN_PROBE)
        self.ctx.dump_html('debug_2_rank.html', html)

        base_host = self.mobile_host if self._is_mobile_url(url) else self.host
        links = []
        for a in make_soup(html).select(RANK_SELECTOR):
            href = a.get('href') or ''
            if not href:
                continue
            full_url = normalize_url(href, base_host)
            if '/book/' in full_url:
                links.append(full_url)

        # 榜单顺序即排名，只去重不排序
        links = dedupe_keep_order(links)
        self.log(f"榜单解析到 {len(links)} 本小说")
        return links

    async def fetch_novel_metadata(self, url: str) -> NovelMetadata:
        started = time.monotonic()
        self.log(f"[START] fetch_novel_metadata: {url}")

        try:
            html = await self.render(url, QIDIAN_PROBE)
        except SpiderError as e:
            self.log(f"浏览器蜘蛛失败: {e}，尝试移动端兜底...")
            return await self.fetch_mobile_metadata(url)

        self.ctx.dump_html('debug_1_metadata.html', html)
        try:
            metadata = self.parse_metadata(html, url)
        except WafBlockedError as e:
            self.log(f"[FAILED] fetch_novel_metadata: {e}，尝试移动端兜底...")
            try:
                return await self.fetch_mobile_metadata(url)
            except SpiderError as fallback_error:
                raise WafBlockedError(f"{e}; 移动端兜底失败: {fallback_error}") from fallback_error

        elapsed = int((time.monotonic() - started) * 1000)
        self.log(f"[SUCCESS] fetch_novel_metadata: {metadata.title} in {elapsed} ms")
        return metadata

    def parse_metadata(self, html: str, url: str) -> NovelMetadata:
        soup = make_soup(html)

        title_el = soup.select_one('h1, #bookName')
        if title_el is not None:
            title = element_text(title_el)
        else:
            # <title> 通常为 "书名_作者_..."
            page_title = soup.select_one('title')
            title = element_text(page_title).split('_')[0].strip() if page_title else ''
        title = title or UNKNOWN_TITLE

        if is_waf_title(title):
            raise WafBlockedError('Browser Spider still caught by WAF')

        description = element_text(soup.select_one('#book-intro-detail'))
        if not description:
            description = element_text(soup.select_one('.book-intro, .intro'))
        if not description:
            meta = soup.select_one('meta[name="description"]')
            description = (meta.get('content') or '').strip() if meta else ''

        tags = [element_text(el) for el in soup.select('.book-attribute a')]
        tags += [element_text(el) for el in soup.select('.all-label a')]

        word_count = UNKNOWN_WORD_COUNT
        count_el = soup.select_one('.count em')
        if count_el is not None:
            word_count = count_el.get_text()

        return NovelMetadata(
            title=title,
            url=url,
            tags=tags,
            word_count=word_count,
            description=description,
        )

    async def fetch_mobile_metadata(self, url: str) -> NovelMetadata:
        """兜底：请求移动端书籍页（WAF 通常较宽松），只解析书名与简介"""
        book_id = extract_qidian_book_id(url)
        if not book_id:
            raise InputError('无法从 URL 提取 bookId')

        mobile_url = f"{self.mobile_host}/book/{book_id}"
        headers = {
            'User-Agent': CONFIG.get('mobile_user_agent', MOBILE_USER_AGENT),
            'Referer': f"{self.mobile_host}/",
        }
        html = await self.fetch_text(mobile_url, headers=headers)
        soup = make_soup(html)

        title = element_text(soup.select_one('h1, .book-title, .detail h2')) or UNKNOWN_TITLE
        if is_waf_title(title):
            raise WafBlockedError('移动端页面同样被 WAF 拦截')

        description = ''
        desc_el = soup.select_one(".book-intro, .intro, meta[name='description']")
        if desc_el is not None:
            if desc_el.name == 'meta':
                description = (desc_el.get('content') or '').strip()
            else:
                description = element_text(desc_el)

        self.log(f"移动端兜底获取元数据成功: {title}")
        return NovelMetadata(
            title=title,
            url=mobile_url,
            tags=[],
            word_count=UNKNOWN_WORD_COUNT,
            description=description,
        )

    async def fetch_chapter_list(self, url: str) -> List[ChapterRef]:
        started = time.monotonic()
        self.log(f"[START] fetch_chapter_list: {url}")

        book_id = extract_qidian_book_id(url)
        if not book_id:
            raise InputError('Failed to extract book ID for catalog')

        catalog_url = f"{self.mobile_host}/book/{book_id}/catalog"
        self.log(f"Fetching catalog from: {catalog_url}")
        html = await self.render(catalog_url, QIDIAN_PROBE)
        self.ctx.dump_html('debug_2_catalog.html', html)

        chapters = []
        for a in make_soup(html).select(CATALOG_SELECTOR):
            title = a.get_text().strip()
            href = a.get('href') or ''
            if not title or not href or 'javascript' in href:
                continue
            full_url = normalize_url(href, self.mobile_host)
            if '/chapter/' in full_url or '/read/' in full_url:
                chapters.append(ChapterRef(title=title, href=full_url))

        if not chapters:
            self.log(f"起点目录为空，HTML 片段: {html[:1000]}")
            raise ParseError('No chapters found in catalog')

        elapsed = int((time.monotonic() - started) * 1000)
        self.log(f"[SUCCESS] fetch_chapter_list: Found {len(chapters)} chapters in {elapsed} ms")
        return chapters

    async def download_chapter(self, url: str) -> Tuple[str, str]:
        started = time.monotonic()
        target_url = self.to_desktop_url(url)
        html = await self.render(target_url, QIDIAN_PROBE)
        self.ctx.dump_html('debug_3_chapter.html', html)

        soup = make_soup(html)
        title = element_text(soup.select_one(CHAPTER_TITLE_SELECTOR))

        container = soup.select_one(CONTENT_SELECTOR)
        if container is None:
            self.log(f"未找到正文: {url}\nHTML 片段: {html[:500]}")
            raise ParseError('Failed to find content (WAF or Selector Mismatch). See logs.')

        lines = [p.get_text() for p in container.select('p')]
        content = '\n\n'.join(lines) if lines else container.get_text()

        elapsed = int((time.monotonic() - started) * 1000)
        self.log(f"[SUCCESS] download_chapter: {title} ({len(content)} chars) in {elapsed} ms")
        return title, content
