# -*- coding: utf-8 -*-
"""
AI 流式转发测试：端点解析、SSE 增量解析、端到端流式转发
"""

import json

import pytest
from aiohttp import web
from aiohttp import test_utils
from hypothesis import given, settings, strategies as st

from core.ai_client import (
    SSEDecoder,
    build_request_body,
    fetch_models,
    resolve_chat_endpoint,
    resolve_models_endpoint,
    run_ai_analysis,
    stream_analysis,
)
from core.exceptions import ApiError, ParseError
from core.models import AiConfig

SCENARIO_CHUNKS = [
    b'data: {"choices":[{"delta":{"content":"he',
    b'llo"}}]}\n',
    b'data: {"choices":[{"delta":{"content":" world"}}]}\n',
    b'data: [DONE]\n',
]


def sse_line(content) -> bytes:
    payload = {'choices': [{'delta': {'content': content}}]}
    return ('data: ' + json.dumps(payload, ensure_ascii=False) + '\n').encode('utf-8')


def decode_all(chunks):
    decoder = SSEDecoder()
    out = []
    for chunk in chunks:
        out.extend(decoder.feed(chunk))
    return out


class TestEndpoints:

    @pytest.mark.parametrize('api_base', [
        'https://api.x.com/v1',
        'https://api.x.com/v1/',
        'https://api.x.com/v1/chat/completions',
        'https://api.x.com/v1/chat/completions/',
    ])
    def test_chat_endpoint(self, api_base):
        assert resolve_chat_endpoint(api_base) == 'https://api.x.com/v1/chat/completions'

    @pytest.mark.parametrize('api_base', [
        'https://api.x.com/v1',
        'https://api.x.com/v1/',
        'https://api.x.com/v1/chat/completions',
    ])
    def test_models_endpoint(self, api_base):
        assert resolve_models_endpoint(api_base) == 'https://api.x.com/v1/models'

    def test_request_body(self):
        body = build_request_body('gpt-x', '系统', '用户', force_json=False)
        assert body == {
            'model': 'gpt-x',
            'messages': [{'role': 'system', 'content': '系统'},
                         {'role': 'user', 'content': '用户'}],
            'stream': True,
            'temperature': 0.7,
        }
        assert build_request_body('m', 's', 'u', force_json=True)['response_format'] == {
            'type': 'json_object'}


class TestSSEDecoder:

    def test_scenario_chunks(self):
        assert decode_all(SCENARIO_CHUNKS) == ['hello', ' world']

    def test_skips_keepalive_and_malformed(self):
        stream = [
            b': keep-alive\n',
            b'\n',
            b'data: {not json}\n',
            b'data: {"choices":[]}\n',
            b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n',
            b'event: ping\n',
            sse_line('ok'),
        ]
        assert decode_all(stream) == ['ok']

    def test_incomplete_tail_is_not_emitted(self):
        decoder = SSEDecoder()
        assert decoder.feed(sse_line('a')[:-1]) == []
        assert decoder.feed(b'\n') == ['a']

    def test_crlf_lines(self):
        assert decode_all([sse_line('x').replace(b'\n', b'\r\n')]) == ['x']

    @settings(max_examples=200, deadline=None)
    @given(
        contents=st.lists(st.text(min_size=1, max_size=8), min_size=1, max_size=6),
        cuts=st.lists(st.integers(min_value=0, max_value=400), max_size=12),
    )
    def test_split_boundaries_do_not_matter(self, contents, cuts):
        """任意切分（包括切在多字节 UTF-8 字符中间）与整体输入结果一致"""
        stream = b''.join(sse_line(c) for c in contents) + b'data: [DONE]\n'
        points = sorted({c % (len(stream) + 1) for c in cuts})
        pieces = []
        prev = 0
        for p in points + [len(stream)]:
            pieces.append(stream[prev:p])
            prev = p

        assert decode_all(pieces) == decode_all([stream])
        assert decode_all([stream]) == contents


def make_ai_app(received, status=200, chunks=SCENARIO_CHUNKS, error_body='bad key',
                models_payload=None):
    async def chat(request):
        received['auth'] = request.headers.get('Authorization')
        received['body'] = await request.json()
        if status != 200:
            return web.Response(status=status, text=error_body)
        resp = web.StreamResponse(headers={'Content-Type': 'text/event-stream'})
        await resp.prepare(request)
        for chunk in chunks:
            await resp.write(chunk)
        await resp.write_eof()
        return resp

    async def models(request):
        received['auth'] = request.headers.get('Authorization')
        if status != 200:
            return web.Response(status=status, text=error_body)
        return web.json_response(models_payload)

    app = web.Application()
    app.router.add_post('/v1/chat/completions', chat)
    app.router.add_get('/v1/models', models)
    return app


class TestStreamAnalysis:

    @pytest.mark.asyncio
    async def test_relays_chunks(self, recorder):
        received = {}
        async with test_utils.TestServer(make_ai_app(received)) as server:
            config = AiConfig(api_base=str(server.make_url('/v1/')), api_key='sk-1', model='m1')
            await stream_analysis(config, '系统提示', '正文', True, recorder)

        assert recorder.payloads('ai-analysis') == [{'chunk': 'hello'}, {'chunk': ' world'}]
        statuses = recorder.payloads('ai-analysis-status')
        assert statuses[0]['status'] == 'start'
        assert statuses[0]['message'].startswith('Connecting to AI at ')
        assert statuses[-1] == {'message': 'Analysis Complete', 'status': 'done'}
        assert received['auth'] == 'Bearer sk-1'
        assert received['body']['model'] == 'm1'
        assert received['body']['response_format'] == {'type': 'json_object'}

    @pytest.mark.asyncio
    async def test_api_error(self, recorder):
        async with test_utils.TestServer(make_ai_app({}, status=401)) as server:
            config = AiConfig(api_base=str(server.make_url('/v1')), api_key='bad', model='m')
            with pytest.raises(ApiError, match='API Error 401: bad key'):
                await stream_analysis(config, 's', 'u', False, recorder)

        assert recorder.payloads('ai-analysis') == []
        assert [p['status'] for p in recorder.payloads('ai-analysis-status')] == ['start']

    @pytest.mark.asyncio
    async def test_run_ai_analysis_reports_error(self, recorder):
        async with test_utils.TestServer(make_ai_app({}, status=500, error_body='boom')) as server:
            config = AiConfig(api_base=str(server.make_url('/v1')), api_key='k', model='m')
            ok = await run_ai_analysis(config, 's', 'u', False, recorder)

        assert ok is False
        assert recorder.payloads('ai-analysis-status')[-1] == {
            'message': 'Error: API Error 500: boom', 'status': 'error'}


class TestFetchModels:

    @pytest.mark.asyncio
    async def test_lists_model_ids(self):
        received = {}
        payload = {'data': [{'id': 'gpt-a'}, {'id': 'gpt-b'}, {'object': 'model'}]}
        async with test_utils.TestServer(make_ai_app(received, models_payload=payload)) as server:
            config = AiConfig(api_base=str(server.make_url('/v1/chat/completions')), api_key='k')
            models = await fetch_models(config)

        assert models == ['gpt-a', 'gpt-b']
        assert received['auth'] == 'Bearer k'

    @pytest.mark.asyncio
    async def test_unknown_shape(self):
        async with test_utils.TestServer(make_ai_app({}, models_payload={'models': []})) as server:
            config = AiConfig(api_base=str(server.make_url('/v1')), api_key='k')
            with pytest.raises(ParseError, match='Unknown response format'):
                await fetch_models(config)

    @pytest.mark.asyncio
    async def test_error_status(self):
        async with test_utils.TestServer(make_ai_app({}, status=403)) as server:
            config = AiConfig(api_base=str(server.make_url('/v1')), api_key='k')
            with pytest.raises(ApiError, match='API Error 403'):
                await fetch_models(config)
