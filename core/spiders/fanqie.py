# -*- coding: utf-8 -*-
"""
番茄小说蜘蛛 - 直接 HTTP 请求 + HTML 选择器
"""

from typing import List, Tuple

from config.config import CONFIG
from core.exceptions import ParseError
from core.models import ChapterRef, NovelMetadata, UNKNOWN_WORD_COUNT
from .base import BaseSpider, dedupe_keep_order, element_text, make_soup, normalize_url

RANK_SELECTOR = '.rank-book-item .title a, .rank-book-item a.book-item-title'
RANK_FALLBACK_SELECTOR = 'a[href*="/page/"]'
CHAPTER_SELECTOR = '.chapter-item-title'
CONTENT_SELECTOR = '.muye-reader-content'


class FanqieSpider(BaseSpider):
    name = 'fanqie'
    # 目录第一项是最新章节，后续流程按正序计数，因此丢弃
    SKIP_LEADING = 1

    @property
    def host(self) -> str:
        return CONFIG.get('fanqie_host', 'https://fanqienovel.com')

    def chapter_url(self, href: str) -> str:
        return f"{self.host}{href}"

    async def fetch_rank_list(self, url: str) -> List[str]:
        html = await self.fetch_text(url)
        soup = make_soup(html)
        anchors = soup.select(RANK_SELECTOR) or soup.select(RANK_FALLBACK_SELECTOR)

        links = []
        for a in anchors:
            href = a.get('href') or ''
            if not href:
                continue
            full_url = normalize_url(href, self.host)
            if '/page/' in full_url:
                links.append(full_url)

        links = dedupe_keep_order(links)
        self.log(f"番茄榜单解析到 {len(links)} 本小说")
        return links

    async def fetch_novel_metadata(self, url: str) -> NovelMetadata:
        html = await self.fetch_text(url)
        soup = make_soup(html)

        title = element_text(soup.select_one('.info-name h1') or soup.select_one('h1'))
        if not title:
            raise ParseError(f"未找到书名: {url}")

        tags = [element_text(el) for el in soup.select('.info-label span')]
        word_count = element_text(soup.select_one('.info-count-word')) or UNKNOWN_WORD_COUNT

        description = element_text(soup.select_one('.page-abstract-content'))
        if not description:
            meta = soup.select_one('meta[name="description"]')
            description = (meta.get('content') or '').strip() if meta else ''

        return NovelMetadata(
            title=title,
            url=url,
            tags=tags,
            word_count=word_count,
            description=description,
        )

    async def fetch_chapter_list(self, url: str) -> List[ChapterRef]:
        html = await self.fetch_text(url)
        soup = make_soup(html)

        chapters = []
        for element in soup.select(CHAPTER_SELECTOR):
            href = element.get('href') or ''
            if href:
                chapters.append(ChapterRef(title=element.get_text(), href=href))
        self.log(f"番茄目录解析到 {len(chapters)} 章")
        return chapters

    async def download_chapter(self, url: str) -> Tuple[str, str]:
        html = await self.fetch_text(url)
        soup = make_soup(html)

        container = soup.select_one(CONTENT_SELECTOR)
        if container is None:
            raise ParseError(f"未找到正文: {url}")

        title = element_text(soup.select_one('.muye-reader-title') or soup.select_one('h1'))
        paragraphs = [p.get_text().strip() for p in container.select('p')]
        paragraphs = [p for p in paragraphs if p]
        content = '\n\n'.join(paragraphs) if paragraphs else container.get_text().strip()
        return title, content
