# -*- coding: utf-8 -*-
"""
数据模型 - 元数据、章节引用、AI 配置、进度事件与文件树节点
"""

from dataclasses import dataclass, field, asdict
from typing import List

# 进度事件状态
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"
STATUS_SKIPPED = "skipped"
STATUS_START = "start"
STATUS_DONE = "done"

UNKNOWN_WORD_COUNT = "未知"


def normalize_tags(tags) -> List[str]:
    """去除空白与空标签，去重并排序"""
    cleaned = {t.strip() for t in (tags or []) if t and t.strip()}
    return sorted(cleaned)


def sanitize_title(title: str) -> str:
    """目录名清洗：将 / 与 \\ 替换为下划线"""
    return (title or "").replace("/", "_").replace("\\", "_")


@dataclass
class NovelMetadata:
    """小说元数据，落盘为 info.json"""
    title: str
    url: str
    tags: List[str] = field(default_factory=list)
    word_count: str = UNKNOWN_WORD_COUNT
    description: str = ""

    def __post_init__(self):
        self.tags = normalize_tags(self.tags)

    @property
    def safe_title(self) -> str:
        return sanitize_title(self.title)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ChapterRef:
    """章节目录中的一项；番茄为站内相对链接，起点为绝对链接"""
    title: str
    href: str


@dataclass
class AiConfig:
    api_base: str
    api_key: str
    model: str = ""

    @property
    def base(self) -> str:
        return (self.api_base or "").strip().rstrip("/")


@dataclass
class ProgressPayload:
    message: str
    status: str

    def to_dict(self) -> dict:
        return {"message": self.message, "status": self.status}


@dataclass
class FileNode:
    name: str
    path: str
    is_dir: bool
    children: List["FileNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "is_dir": self.is_dir,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class DownloadResult:
    """单本小说下载结果统计"""
    title: str
    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    failed_chapters: List[str] = field(default_factory=list)
