# -*- coding: utf-8 -*-
"""
AI 流式分析 - OpenAI 兼容 chat/completions 接口的 SSE 转发

事件:
    ai-analysis         {chunk}            每个增量文本
    ai-analysis-status  {message, status}  start / done / error
"""

import json
from typing import Callable, List, Optional

import aiohttp

from config.config import CONFIG
from core.exceptions import ApiError, ParseError, SpiderError, TransportError
from core.models import AiConfig, ProgressPayload, STATUS_DONE, STATUS_ERROR, STATUS_START

CHUNK_EVENT = 'ai-analysis'
STATUS_EVENT = 'ai-analysis-status'

CHAT_SUFFIX = '/chat/completions'
MODELS_SUFFIX = '/models'
DATA_PREFIX = 'data: '
DONE_SENTINEL = '[DONE]'


def resolve_chat_endpoint(api_base: str) -> str:
    base = (api_base or '').strip().rstrip('/')
    if base.endswith(CHAT_SUFFIX):
        return base
    return base + CHAT_SUFFIX


def resolve_models_endpoint(api_base: str) -> str:
    base = (api_base or '').strip().rstrip('/')
    if base.endswith(CHAT_SUFFIX):
        return base[:-len(CHAT_SUFFIX)] + MODELS_SUFFIX
    return base + MODELS_SUFFIX


def build_request_body(model: str, system_prompt: str, user_content: str, force_json: bool = False) -> dict:
    body = {
        'model': model,
        'messages': [
            {'role': 'system', 'content': system_prompt},
            {'role': 'user', 'content': user_content},
        ],
        'stream': True,
        'temperature': 0.7,
    }
    if force_json:
        body['response_format'] = {'type': 'json_object'}
    return body


def _auth_headers(api_key: str) -> dict:
    return {'Authorization': f"Bearer {api_key}"}


def extract_delta(data: str) -> Optional[str]:
    """从一条 data 负载中取 choices[0].delta.content；不符合预期返回 None"""
    try:
        payload = json.loads(data)
        content = payload['choices'][0]['delta'].get('content')
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) else None


class SSEDecoder:
    """
    增量 SSE 解析器

    按字节缓冲并以 b'\\n' 切行，多字节 UTF-8 字符被拆在两个分块之间时也能得到同样的结果。
    """

    def __init__(self):
        self._buffer = b''

    def feed(self, data: bytes) -> List[str]:
        self._buffer += data
        chunks = []
        while True:
            idx = self._buffer.find(b'\n')
            if idx < 0:
                break
            raw_line = self._buffer[:idx]
            self._buffer = self._buffer[idx + 1:]

            line = raw_line.decode('utf-8', errors='replace').strip()
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):]
            if data == DONE_SENTINEL:
                continue
            content = extract_delta(data)
            if content is not None:
                chunks.append(content)
        return chunks


def _emit_status(emit, message: str, status: str):
    emit(STATUS_EVENT, ProgressPayload(message, status).to_dict())


def _make_session() -> aiohttp.ClientSession:
    # 流式响应可能持续很久，只限制建立连接的时间
    timeout = aiohttp.ClientTimeout(total=None, sock_connect=CONFIG.get('request_timeout', 30))
    return aiohttp.ClientSession(timeout=timeout)


async def stream_analysis(config: AiConfig, system_prompt: str, user_content: str,
                          force_json: bool, emit: Callable[[str, dict], None],
                          session: Optional[aiohttp.ClientSession] = None):
    """
    调用 chat/completions 流式接口，把增量文本逐条转发为 ai-analysis 事件

    Raises:
        ApiError: 非 2xx 响应
        TransportError: 连接或读取失败
    """
    url = resolve_chat_endpoint(config.api_base)
    body = build_request_body(config.model, system_prompt, user_content, force_json)

    _emit_status(emit, f"Connecting to AI at {url}...", STATUS_START)

    own_session = session is None
    if own_session:
        session = _make_session()
    try:
        async with session.post(url, json=body, headers=_auth_headers(config.api_key)) as resp:
            if not 200 <= resp.status < 300:
                raise ApiError(resp.status, await resp.text())

            decoder = SSEDecoder()
            async for data in resp.content.iter_any():
                for chunk in decoder.feed(data):
                    emit(CHUNK_EVENT, {'chunk': chunk})
    except aiohttp.ClientError as e:
        raise TransportError(f"Request failed: {e}") from e
    finally:
        if own_session:
            await session.close()

    _emit_status(emit, 'Analysis Complete', STATUS_DONE)


async def run_ai_analysis(config: AiConfig, system_prompt: str, user_content: str,
                          force_json: bool, emit: Callable[[str, dict], None],
                          session: Optional[aiohttp.ClientSession] = None) -> bool:
    """start_ai_analysis 的后台任务：失败转成 error 状态事件"""
    try:
        await stream_analysis(config, system_prompt, user_content, force_json, emit, session)
    except SpiderError as e:
        _emit_status(emit, f"Error: {e}", STATUS_ERROR)
        return False
    return True


async def fetch_models(config: AiConfig, session: Optional[aiohttp.ClientSession] = None) -> List[str]:
    """GET <base>/models，返回 data[].id 列表"""
    url = resolve_models_endpoint(config.api_base)

    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=CONFIG.get('request_timeout', 30)))
    try:
        async with session.get(url, headers=_auth_headers(config.api_key)) as resp:
            if not 200 <= resp.status < 300:
                raise ApiError(resp.status)
            text = await resp.text()
    except aiohttp.ClientError as e:
        raise TransportError(f"Request failed: {e}") from e
    finally:
        if own_session:
            await session.close()

    try:
        payload = json.loads(text)
    except ValueError as e:
        raise ParseError(f"Parse error: {e}") from e

    data = payload.get('data') if isinstance(payload, dict) else None
    if not isinstance(data, list):
        raise ParseError(f"Unknown response format: {payload}")
    return [m['id'] for m in data if isinstance(m, dict) and isinstance(m.get('id'), str)]
