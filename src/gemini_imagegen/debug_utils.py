"""请求/响应日志脱敏工具。

gemini-imagegen v0.1.0
"""

from __future__ import annotations

import re
from typing import Any, Callable

__all__ = [
    "EventCallback",
    "sanitize_for_debug",
    "sanitize_headers",
    "mask_token",
]

EventCallback = Callable[[dict[str, Any]], None]

_BASE64_RE = re.compile(r'^[A-Za-z0-9+/=]+$')

# 认证相关头，日志中不输出
_SECRET_HEADERS = frozenset({"authorization", "x-goog-api-key"})

# 单条字符串日志上限
MAX_DEBUG_TEXT = 500


def _summarize_inline_data(inline_data: dict[str, Any]) -> dict[str, Any]:
    """内联图片只保留 MIME 类型和长度，兼容 mime_type 和 mimeType。"""
    mime_type = inline_data.get("mime_type") or inline_data.get("mimeType") or "?"
    data = inline_data.get("data") or ""
    summary = dict(inline_data)
    summary["data"] = f"<{mime_type}:{len(data)} chars>"
    return summary


def sanitize_for_debug(data: Any) -> Any:
    """生成可输出到日志的副本。

    - inline_data / inlineData 中的图片数据替换为摘要
    - 其余疑似 base64 的长字符串替换为长度
    - 过长文本截断到 MAX_DEBUG_TEXT
    """
    if isinstance(data, dict):
        result = {}
        for k, v in data.items():
            if k in ("inline_data", "inlineData") and isinstance(v, dict):
                result[k] = _summarize_inline_data(v)
            else:
                result[k] = sanitize_for_debug(v)
        return result
    if isinstance(data, list):
        return [sanitize_for_debug(item) for item in data]
    if isinstance(data, str) and len(data) > 100:
        if _BASE64_RE.match(data[:100]):
            return f"<base64:{len(data)} chars>"
        if len(data) > MAX_DEBUG_TEXT:
            return f"{data[:MAX_DEBUG_TEXT]}...(+{len(data) - MAX_DEBUG_TEXT} chars)"
    return data


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    """认证头替换为 mask_token 的结果，便于核对使用的 key。"""
    return {
        k: mask_token(v) if k.lower() in _SECRET_HEADERS else v
        for k, v in headers.items()
    }


def mask_token(token: str) -> str:
    """脱敏 token，只显示前4位和后4位。"""
    if not token:
        return "(empty)"
    clean = token.replace("Bearer ", "")
    if len(clean) <= 8:
        return clean[:2] + "***"
    return f"{clean[:4]}...{clean[-4:]}"
