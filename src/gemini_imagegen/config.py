"""gemini_imagegen 配置。

gemini-imagegen v0.1.0

环境变量:
    GEMINI_API_KEY: API key（回退到 GOOGLE_API_KEY，均未设置时使用占位值 demo-key）
    GEMINI_IMAGE_MODEL: 模型 ID
    GEMINI_ENDPOINT: API 端点 URL（默认 Google AI Studio）
    GEMINI_TIMEOUT: 单次请求超时（秒）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

__all__ = [
    "DEFAULT_MODEL",
    "DEFAULT_ENDPOINT",
    "DEFAULT_TIMEOUT",
    "PLACEHOLDER_API_KEY",
    "GeminiEnvConfig",
    "get_imagegen_config",
]

logger = logging.getLogger(__name__)

# 默认模型 ID（支持图像输出）
DEFAULT_MODEL = "gemini-2.5-flash-image-preview"

# 默认 API 端点 URL
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"

# 默认超时（秒）
DEFAULT_TIMEOUT = 120.0

# 非生产环境占位 key，生产环境应通过后端代理注入
PLACEHOLDER_API_KEY = "demo-key"


def _normalize_endpoint(url: str) -> str:
    """规范化端点 URL，自动补全版本路径。"""
    url = url.rstrip("/")
    if url.endswith(("/v1beta", "/v1", "/v2")):
        return url
    return f"{url}/v1beta"


def _parse_timeout(value: str | None) -> float:
    """解析超时配置，非法值回退到默认值。"""
    if not value or not value.strip():
        return DEFAULT_TIMEOUT
    try:
        timeout = float(value)
    except ValueError:
        logger.warning(f"Invalid GEMINI_TIMEOUT {value!r}, using {DEFAULT_TIMEOUT}s")
        return DEFAULT_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_TIMEOUT


@dataclass
class GeminiEnvConfig:
    """Gemini 环境配置。

    Attributes:
        base_url: API 端点 URL
        api_key: API key（或 "Bearer ..." 形式的 token）
        model: 模型 ID
        timeout: 单次请求超时（秒）
    """
    base_url: str
    api_key: str
    model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_TIMEOUT

    @property
    def is_placeholder(self) -> bool:
        """是否正在使用占位 key。"""
        return self.api_key == PLACEHOLDER_API_KEY

    @property
    def generate_url(self) -> str:
        """generateContent 完整路径。"""
        return f"{self.base_url}/models/{self.model}:generateContent"


def get_imagegen_config() -> GeminiEnvConfig:
    """从环境变量加载配置。

    Returns:
        GeminiEnvConfig 实例
    """
    api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY", "")
    if not api_key:
        logger.warning(
            "GEMINI_API_KEY not set, falling back to placeholder key. "
            "Requests will be rejected by the API."
        )
        api_key = PLACEHOLDER_API_KEY

    model = os.environ.get("GEMINI_IMAGE_MODEL") or DEFAULT_MODEL
    raw_url = os.environ.get("GEMINI_ENDPOINT") or DEFAULT_ENDPOINT

    return GeminiEnvConfig(
        base_url=_normalize_endpoint(raw_url),
        api_key=api_key,
        model=model,
        timeout=_parse_timeout(os.environ.get("GEMINI_TIMEOUT")),
    )
