# -*- coding: utf-8 -*-
"""
平台蜘蛛 - 固定的平台标签到实现的映射，不做动态插件加载
"""

from enum import Enum

from core.exceptions import InputError
from .base import BaseSpider, SpiderContext
from .fanqie import FanqieSpider
from .qidian import QidianSpider


class Platform(str, Enum):
    FANQIE = 'fanqie'
    QIDIAN = 'qidian'


_SPIDERS = {
    Platform.FANQIE: FanqieSpider,
    Platform.QIDIAN: QidianSpider,
}


def parse_platform(platform: str) -> Platform:
    try:
        return Platform((platform or '').strip().lower())
    except ValueError:
        raise InputError(f"不支持的平台: {platform}") from None


def get_spider(platform: str, context: SpiderContext) -> BaseSpider:
    return _SPIDERS[parse_platform(platform)](context)


__all__ = [
    'Platform',
    'SpiderContext',
    'BaseSpider',
    'FanqieSpider',
    'QidianSpider',
    'parse_platform',
    'get_spider',
]
