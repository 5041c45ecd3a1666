# -*- coding: utf-8 -*-
"""
文件服务测试：文件树过滤与排序、元数据合并、删除与导出、工作区初始化
"""

import json
import os

import pytest

from core.exceptions import InputError, StorageError
from core.file_utils import (
    build_file_tree,
    chapter_filename,
    delete_chapter,
    delete_novel,
    ensure_workspace_dirs,
    export_chapter,
    format_chapter_file,
    read_file_content,
    update_novel_metadata,
)


def touch(path, text=''):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')


class TestFileTree:

    def test_filter_and_order(self, tmp_path):
        touch(tmp_path / 'a.txt')
        touch(tmp_path / 'b.json')
        touch(tmp_path / 'c.md')
        (tmp_path / 'sub').mkdir()

        tree = build_file_tree(str(tmp_path))

        assert [(n.name, n.is_dir) for n in tree] == [('sub', True), ('a.txt', False), ('b.json', False)]

    def test_nested_relative_paths(self, tmp_path):
        touch(tmp_path / '书B' / '01.txt')
        touch(tmp_path / '书B' / 'info.json')
        touch(tmp_path / '书A' / 'cover.png')
        touch(tmp_path / 'z.txt')

        tree = [node.to_dict() for node in build_file_tree(str(tmp_path))]

        assert [n['name'] for n in tree] == ['书A', '书B', 'z.txt']
        assert tree[0]['children'] == []
        assert [c['path'] for c in tree[1]['children']] == [
            os.path.join('书B', '01.txt'), os.path.join('书B', 'info.json')]

    def test_missing_dir_is_empty(self, tmp_path):
        assert build_file_tree(str(tmp_path / 'nope')) == []


class TestChapterFiles:

    def test_chapter_filename(self):
        assert chapter_filename(1) == '01.txt'
        assert chapter_filename(12) == '12.txt'
        assert chapter_filename(100) == '100.txt'

    def test_format_chapter_file(self):
        text = format_chapter_file('第1章', 'https://x/1', '段一\n\n段二')
        assert text.splitlines() == ['标题: 第1章', '链接: https://x/1', '=' * 50, '', '段一', '', '段二']

    def test_read_file_content(self, tmp_path):
        touch(tmp_path / '01.txt', '内容')
        assert read_file_content(str(tmp_path), '01.txt') == '内容'
        with pytest.raises(StorageError):
            read_file_content(str(tmp_path), 'missing.txt')


class TestUpdateMetadata:

    def test_top_level_overlay(self, tmp_path):
        info = {'title': '书', 'url': 'u', 'tags': ['a'], 'extra': {'x': 1, 'y': 2}}
        touch(tmp_path / '书' / 'info.json', json.dumps(info, ensure_ascii=False))

        result = update_novel_metadata(str(tmp_path), '书', {
            'tags': ['b'], 'extra': {'x': 9}, 'ai_analysis': {'genre': '玄幻'}})

        assert result == 'Metadata updated'
        text = (tmp_path / '书' / 'info.json').read_text(encoding='utf-8')
        merged = json.loads(text)
        assert merged == {'title': '书', 'url': 'u', 'tags': ['b'], 'extra': {'x': 9},
                          'ai_analysis': {'genre': '玄幻'}}
        assert '\n  "title"' in text

    def test_missing_info_json(self, tmp_path):
        with pytest.raises(StorageError, match='info.json not found'):
            update_novel_metadata(str(tmp_path), '书', {'a': 1})


class TestDeleteAndExport:

    def test_delete_novel(self, tmp_path, workspace):
        touch(tmp_path / '书' / '01.txt')

        assert delete_novel(str(tmp_path), '书', str(workspace)) == '已删除《书》'
        assert not (tmp_path / '书').exists()
        log_text = (workspace / 'logs' / 'app.log').read_text(encoding='utf-8')
        assert '已删除小说: 书' in log_text

    def test_delete_novel_preconditions(self, tmp_path, workspace):
        with pytest.raises(StorageError, match='小说目录不存在'):
            delete_novel(str(tmp_path), '无', str(workspace))
        touch(tmp_path / 'file')
        with pytest.raises(StorageError, match='路径不是目录'):
            delete_novel(str(tmp_path), 'file', str(workspace))

    def test_delete_chapter(self, tmp_path, workspace):
        touch(tmp_path / '书' / '01.txt')
        (tmp_path / '书' / 'dir.txt').mkdir()

        assert delete_chapter(str(tmp_path), '书', '01.txt', str(workspace)) == '已删除章节: 01.txt'
        assert not (tmp_path / '书' / '01.txt').exists()
        with pytest.raises(StorageError, match='章节文件不存在'):
            delete_chapter(str(tmp_path), '书', '01.txt', str(workspace))
        with pytest.raises(StorageError, match='路径不是文件'):
            delete_chapter(str(tmp_path), '书', 'dir.txt', str(workspace))

    @pytest.mark.parametrize('novel_name', ['', '.', '..', '书/01.txt', '..\\other'])
    def test_delete_novel_rejects_non_entry_names(self, tmp_path, workspace, novel_name):
        touch(tmp_path / '书' / '01.txt')

        with pytest.raises(InputError):
            delete_novel(str(tmp_path), novel_name, str(workspace))

        assert (tmp_path / '书' / '01.txt').exists()

    @pytest.mark.parametrize('chapter_file', ['', '.', '..', '../书/01.txt'])
    def test_delete_chapter_rejects_non_entry_names(self, tmp_path, workspace, chapter_file):
        touch(tmp_path / '书' / '01.txt')

        with pytest.raises(InputError):
            delete_chapter(str(tmp_path), '书', chapter_file, str(workspace))
        with pytest.raises(InputError):
            delete_chapter(str(tmp_path), '', '01.txt', str(workspace))

        assert (tmp_path / '书' / '01.txt').exists()

    def test_export_chapter(self, workspace):
        path = export_chapter('测试书', 3, '# 细纲', str(workspace))

        assert path == os.path.join(str(workspace), 'result', '测试书', '3.md')
        with open(path, encoding='utf-8') as f:
            assert f.read() == '# 细纲'


class TestWorkspace:

    def test_ensure_workspace_dirs_is_idempotent(self, workspace):
        ensure_workspace_dirs(str(workspace))
        ensure_workspace_dirs(str(workspace))
        assert sorted(os.listdir(workspace)) == ['downloads', 'logs']

    def test_empty_root(self):
        with pytest.raises(StorageError):
            ensure_workspace_dirs('')
