# -*- coding: utf-8 -*-
"""
命令路由 - 每个 UI 命令对应一个 POST /api/<命令名>，参数放在 JSON 请求体中

成功: {'success': True, 'data': <返回值>}
失败: {'success': False, 'message': <错误信息>}，输入/业务错误 400，其它 500
"""

from flask import jsonify, request

from core.exceptions import SpiderError
from .commands import CommandService


def _call(func, *args, **kwargs):
    try:
        return jsonify({'success': True, 'data': func(*args, **kwargs)})
    except SpiderError as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500


def init_command_routes(app, service: CommandService):
    """注册命令路由"""

    def body() -> dict:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    @app.route('/api/start_download', methods=['POST'])
    def api_start_download():
        data = body()
        return _call(
            service.start_download,
            url=(data.get('url') or '').strip(),
            count=data.get('count', 10),
            dir_name=(data.get('dir_name') or '').strip(),
            platform=data.get('platform', ''),
            debug_spider_visible=data.get('debug_spider_visible', False),
            workspace_root=data.get('workspace_root'),
        )

    @app.route('/api/scan_and_download_rank', methods=['POST'])
    def api_scan_and_download_rank():
        data = body()
        return _call(
            service.scan_and_download_rank,
            rank_url=(data.get('rank_url') or '').strip(),
            max_novels=data.get('max_novels', 10),
            count_per_novel=data.get('count_per_novel', 5),
            dir_name=(data.get('dir_name') or '').strip(),
            platform=data.get('platform', ''),
            debug_spider_visible=data.get('debug_spider_visible', False),
            workspace_root=data.get('workspace_root'),
        )

    @app.route('/api/start_ai_analysis', methods=['POST'])
    def api_start_ai_analysis():
        data = body()
        return _call(
            service.start_ai_analysis,
            api_base=data.get('api_base', ''),
            api_key=data.get('api_key', ''),
            model=data.get('model', ''),
            prompt=data.get('prompt', ''),
            content=data.get('content', ''),
            response_json=data.get('response_json'),
        )

    @app.route('/api/fetch_ai_models', methods=['POST'])
    def api_fetch_ai_models():
        data = body()
        return _call(service.fetch_ai_models, data.get('api_base', ''), data.get('api_key', ''))

    @app.route('/api/get_auto_analysis_prompt', methods=['GET', 'POST'])
    def api_get_auto_analysis_prompt():
        return _call(service.get_auto_analysis_prompt)

    @app.route('/api/update_novel_metadata', methods=['POST'])
    def api_update_novel_metadata():
        data = body()
        return _call(service.update_novel_metadata,
                     data.get('dir_name', ''), data.get('novel_name', ''), data.get('metadata') or {})

    @app.route('/api/get_file_tree', methods=['POST'])
    def api_get_file_tree():
        return _call(service.get_file_tree, body().get('dir_name', ''))

    @app.route('/api/get_file_content', methods=['POST'])
    def api_get_file_content():
        data = body()
        return _call(service.get_file_content, data.get('dir', ''), data.get('filename', ''))

    @app.route('/api/delete_novel', methods=['POST'])
    def api_delete_novel():
        data = body()
        return _call(service.delete_novel, data.get('dir_name', ''), data.get('novel_name', ''),
                     data.get('workspace_root'))

    @app.route('/api/delete_chapter', methods=['POST'])
    def api_delete_chapter():
        data = body()
        return _call(service.delete_chapter, data.get('dir_name', ''), data.get('novel_name', ''),
                     data.get('chapter_file', ''), data.get('workspace_root'))

    @app.route('/api/export_chapter', methods=['POST'])
    def api_export_chapter():
        data = body()
        return _call(service.export_chapter, data.get('novel_title', ''), data.get('chapter_index'),
                     data.get('content', ''), data.get('workspace_root'))

    @app.route('/api/read_log_file', methods=['POST'])
    def api_read_log_file():
        return _call(service.read_log_file, body().get('workspace_root'))

    @app.route('/api/clear_log', methods=['POST'])
    def api_clear_log():
        return _call(service.clear_log, body().get('workspace_root'))

    @app.route('/api/ensure_workspace_dirs', methods=['POST'])
    def api_ensure_workspace_dirs():
        return _call(service.ensure_workspace_dirs, body().get('workspace_root', ''))

    @app.route('/api/events', methods=['GET'])
    def api_events():
        """取走缓存的事件"""
        return jsonify({'success': True, 'data': service.bus.drain()})
