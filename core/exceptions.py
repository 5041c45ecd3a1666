# -*- coding: utf-8 -*-
"""
自定义异常类
用于在蜘蛛、下载流水线、AI 转发与文件服务之间传递具有明确语义的错误信息。
异常消息即 UI 上展示的文案。
"""


class SpiderError(Exception):
    """所有抓取/下载相关错误的基类"""
    pass


class InputError(SpiderError):
    """输入不合法：缺少链接、不支持的平台、无法提取书籍ID"""
    pass


class TransportError(SpiderError):
    """网络请求失败：建立连接、超时或非 2xx 状态码"""
    pass


class WafBlockedError(SpiderError):
    """页面被 WAF 拦截（挑战页替代了真实内容）"""
    pass


class ParseError(SpiderError):
    """页面或响应结构不符合预期（选择器未命中、JSON 格式未知）"""
    pass


class StorageError(SpiderError):
    """文件系统创建/读取/写入/删除失败"""
    pass


class SpiderTimeoutError(SpiderError):
    """浏览器蜘蛛等待页面回传超时"""
    pass


class BrowserWindowError(SpiderError):
    """浏览器蜘蛛窗口创建失败"""
    pass


class ApiError(SpiderError):
    """AI 接口返回非 2xx 状态码"""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"API Error {status}: {body}" if body else f"API Error {status}")


class NovelDownloadError(SpiderError):
    """单本小说下载失败；错误事件已由流水线发出，调用方只需记录"""
    pass
