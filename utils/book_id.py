# -*- coding: utf-8 -*-
"""书籍ID解析工具。"""

import re
from typing import Optional


FANQIE_BOOK_PATTERN = re.compile(r'/page/(\d+)')
QIDIAN_BOOK_PATTERN = re.compile(r'book/([0-9]+)')


def extract_qidian_book_id(url: str) -> Optional[str]:
    """从起点链接中提取数字书籍ID，如 https://www.qidian.com/book/12345/"""
    match = QIDIAN_BOOK_PATTERN.search(url or '')
    return match.group(1) if match else None


def extract_fanqie_book_id(url: str) -> Optional[str]:
    """从番茄链接中提取书籍ID，支持纯数字ID"""
    value = (url or '').strip()
    if not value:
        return None

    match = FANQIE_BOOK_PATTERN.search(value)
    if match:
        return match.group(1)

    if value.isdigit():
        return value
    return None


def extract_book_id(platform: str, url: str) -> Optional[str]:
    """按平台提取书籍ID；(platform, book_id) 即小说的身份标识"""
    if platform == 'qidian':
        return extract_qidian_book_id(url)
    if platform == 'fanqie':
        return extract_fanqie_book_id(url)
    return None
