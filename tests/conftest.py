"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from gemini_imagegen import GeminiEnvConfig  # noqa: E402


class FakeResponse:
    """模拟 aiohttp 响应（支持 async with）。"""

    def __init__(
        self,
        status: int = 200,
        payload: Any = None,
        text: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status = status
        self._payload = payload
        self._text = text
        self.headers = headers or {}

    async def json(self) -> Any:
        return self._payload

    async def text(self) -> str:
        if self._text is not None:
            return self._text
        return json.dumps(self._payload)

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


class FakeSession:
    """模拟 aiohttp.ClientSession，记录每次 post 调用。"""

    def __init__(
        self,
        response: FakeResponse | None = None,
        exc: BaseException | None = None,
    ) -> None:
        self._response = response or FakeResponse(payload={"candidates": []})
        self._exc = exc
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, json: Any = None, headers: Any = None, timeout: Any = None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self._exc is not None:
            raise self._exc
        return self._response

    async def close(self) -> None:
        self.closed = True

    @property
    def last_parts(self) -> list[dict[str, Any]]:
        """最近一次请求的 parts。"""
        return self.calls[-1]["json"]["contents"][0]["parts"]


def make_api_response(*parts: dict[str, Any]) -> dict[str, Any]:
    """构造单候选 generateContent 响应。"""
    return {"candidates": [{"content": {"role": "model", "parts": list(parts)}}]}


def image_part(data: str, camel: bool = True) -> dict[str, Any]:
    key = "inlineData" if camel else "inline_data"
    mime_key = "mimeType" if camel else "mime_type"
    return {key: {mime_key: "image/png", "data": data}}


@pytest.fixture
def config() -> GeminiEnvConfig:
    """测试用配置。"""
    return GeminiEnvConfig(
        base_url="https://example.test/v1beta",
        api_key="test-key-1234567890",
        model="gemini-2.5-flash-image-preview",
        timeout=30.0,
    )
