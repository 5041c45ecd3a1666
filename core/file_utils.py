# -*- coding: utf-8 -*-
"""
文件工具 - 工作区目录、章节文件、info.json、文件树与导出
"""

import json
import os
import shutil
from typing import List, Optional

from core.exceptions import InputError, StorageError
from core.models import FileNode, NovelMetadata, sanitize_title
from utils.app_log import get_project_root, log_to_file

DOWNLOADS_DIR_NAME = 'downloads'
LOGS_DIR_NAME = 'logs'
RESULT_DIR_NAME = 'result'
INFO_FILE_NAME = 'info.json'
CHAPTER_SEPARATOR = '=' * 50
TREE_FILE_EXTENSIONS = ('.txt', '.json')


def ensure_workspace_dirs(workspace_root: str) -> str:
    """创建 downloads/ 与 logs/，已存在时不做任何事"""
    if not workspace_root:
        raise StorageError('工作区路径为空')
    for name in (DOWNLOADS_DIR_NAME, LOGS_DIR_NAME):
        path = os.path.join(workspace_root, name)
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise StorageError(f"创建 {name} 目录失败: {e}") from e
    return 'Workspace directories created'


def chapter_filename(index: int) -> str:
    """章节文件名，index 从 1 开始：1 -> 01.txt"""
    return f"{index:02}.txt"


def format_chapter_file(title: str, url: str, body: str) -> str:
    return f"标题: {title}\n链接: {url}\n{CHAPTER_SEPARATOR}\n\n{body}"


def _dump_json(data) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def ensure_novel_dir(base_dir: str, title: str) -> str:
    """创建 <base_dir>/<清洗后的书名>/ 并返回路径"""
    novel_dir = os.path.join(base_dir, sanitize_title(title))
    try:
        os.makedirs(novel_dir, exist_ok=True)
    except OSError as e:
        raise StorageError(f"创建小说目录失败: {e}") from e
    return novel_dir


def write_metadata(novel_dir: str, metadata: NovelMetadata) -> str:
    """每次下载都覆盖 info.json，保持元数据最新"""
    info_path = os.path.join(novel_dir, INFO_FILE_NAME)
    try:
        with open(info_path, 'w', encoding='utf-8') as f:
            f.write(_dump_json(metadata.to_dict()))
    except OSError as e:
        raise StorageError(f"写入 info.json 失败: {e}") from e
    return info_path


def write_chapter(path: str, title: str, url: str, body: str):
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(format_chapter_file(title, url, body))
    except OSError as e:
        raise StorageError(f"写入章节失败 {path}: {e}") from e


def _read_dir(base_path: str, relative_path: str) -> List[FileNode]:
    target = os.path.join(base_path, relative_path) if relative_path else base_path
    try:
        names = os.listdir(target)
    except OSError:
        return []

    nodes = []
    for name in names:
        full_path = os.path.join(target, name)
        rel_path = os.path.join(relative_path, name) if relative_path else name
        is_dir = os.path.isdir(full_path)

        # 目录总是保留，文件只保留 txt / json
        if not is_dir and os.path.splitext(name)[1].lower() not in TREE_FILE_EXTENSIONS:
            continue

        children = _read_dir(base_path, rel_path) if is_dir else []
        nodes.append(FileNode(name=name, path=rel_path, is_dir=is_dir, children=children))

    nodes.sort(key=lambda node: (not node.is_dir, node.name))
    return nodes


def build_file_tree(dir_name: str) -> List[FileNode]:
    """
    递归生成文件树

    Args:
        dir_name: 根目录（通常是下载目录）

    Returns:
        FileNode 列表，path 为相对根目录的路径；目录不存在时返回空列表
    """
    if not dir_name or not os.path.exists(dir_name):
        return []
    return _read_dir(dir_name, '')


def read_file_content(dir_name: str, filename: str) -> str:
    path = os.path.join(dir_name, filename)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except OSError as e:
        raise StorageError(f"读取文件失败 {path}: {e}") from e


def update_novel_metadata(dir_name: str, novel_name: str, patch: dict) -> str:
    """把 patch 的顶层键覆盖到 info.json 上（不做嵌套合并）"""
    info_path = os.path.join(dir_name, novel_name, INFO_FILE_NAME)
    if not os.path.exists(info_path):
        raise StorageError('info.json not found')

    try:
        with open(info_path, 'r', encoding='utf-8') as f:
            current = json.load(f)
    except OSError as e:
        raise StorageError(f"读取 info.json 失败: {e}") from e
    except ValueError as e:
        raise StorageError(f"info.json 格式错误: {e}") from e

    if isinstance(patch, dict) and isinstance(current, dict):
        for key, value in patch.items():
            current[key] = value

    try:
        with open(info_path, 'w', encoding='utf-8') as f:
            f.write(_dump_json(current))
    except OSError as e:
        raise StorageError(f"写入 info.json 失败: {e}") from e
    return 'Metadata updated'


def _check_entry_name(name: str, message: str):
    """只接受下载目录下的单级条目名，空名、. 、.. 与带分隔符的名字都会指向别处"""
    if not name or name in ('.', '..') or '/' in name or '\\' in name:
        raise InputError(message)


def delete_novel(dir_name: str, novel_name: str, workspace_root: Optional[str] = None) -> str:
    _check_entry_name(novel_name, f"无效的小说名: {novel_name!r}")
    novel_path = os.path.join(dir_name, novel_name)
    if not os.path.exists(novel_path):
        raise StorageError('小说目录不存在')
    if not os.path.isdir(novel_path):
        raise StorageError('路径不是目录')

    try:
        shutil.rmtree(novel_path)
    except OSError as e:
        raise StorageError(f"删除失败: {e}") from e

    log_to_file(f"已删除小说: {novel_name}", workspace_root)
    return f"已删除《{novel_name}》"


def delete_chapter(dir_name: str, novel_name: str, chapter_file: str,
                   workspace_root: Optional[str] = None) -> str:
    _check_entry_name(novel_name, f"无效的小说名: {novel_name!r}")
    _check_entry_name(chapter_file, f"无效的章节文件名: {chapter_file!r}")
    chapter_path = os.path.join(dir_name, novel_name, chapter_file)
    if not os.path.exists(chapter_path):
        raise StorageError('章节文件不存在')
    if not os.path.isfile(chapter_path):
        raise StorageError('路径不是文件')

    try:
        os.remove(chapter_path)
    except OSError as e:
        raise StorageError(f"删除失败: {e}") from e

    log_to_file(f"已删除章节: {novel_name}/{chapter_file}", workspace_root)
    return f"已删除章节: {chapter_file}"


def export_chapter(novel_title: str, chapter_index: int, content: str,
                   workspace_root: Optional[str] = None) -> str:
    """写入 <root>/result/<novel_title>/<chapter_index>.md，返回文件路径"""
    root = workspace_root or get_project_root()
    result_dir = os.path.join(root, RESULT_DIR_NAME, novel_title)
    try:
        os.makedirs(result_dir, exist_ok=True)
    except OSError as e:
        raise StorageError(f"创建目录失败: {e}") from e

    file_path = os.path.join(result_dir, f"{chapter_index}.md")
    try:
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content or '')
    except OSError as e:
        raise StorageError(f"写入文件失败: {e}") from e

    log_to_file(f"已导出章节到: {file_path}", workspace_root)
    return file_path
