"""Gemini 图像 API 客户端。

gemini-imagegen v0.1.0

使用 aiohttp 异步调用 Gemini generateContent 接口，提供生成、编辑、分割三种操作。
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from typing import Any

import aiohttp
from pydantic import ValidationError

from .config import GeminiEnvConfig, get_imagegen_config
from .debug_utils import EventCallback, mask_token, sanitize_for_debug, sanitize_headers
from .errors import (
    FlatErrorShape,
    ImageGenError,
    NoResponseTextError,
    SegmentationFormatError,
    match_error_shapes,
    normalize_provider_error,
)
from .prompts import build_edit_prompt, build_segmentation_prompt
from .types import (
    ContentBuilder,
    ContentPart,
    EditRequest,
    GenerationRequest,
    SegmentationRequest,
    SegmentationResult,
)

__all__ = [
    "ImageGenClient",
    "build_generation_contents",
    "build_edit_contents",
    "build_segmentation_contents",
    "extract_images",
    "extract_text",
]

logger = logging.getLogger(__name__)

# 生成/编辑需要图片输出
IMAGE_MODALITIES = ["TEXT", "IMAGE"]

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class _ProviderResponseError(Exception):
    """非 200 响应，仅在客户端内部流转。"""

    def __init__(
        self,
        status_code: int,
        body: str,
        retry_after: float | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.retry_after = retry_after
        super().__init__(f"[{status_code}] {body[:200]}")

    @property
    def payload(self) -> Any:
        """错误体，JSON 解析失败时返回原始文本。"""
        try:
            return json.loads(self.body)
        except ValueError:
            return self.body


# =============================================================================
# 请求/响应转换
# =============================================================================


def build_generation_contents(request: GenerationRequest) -> list[ContentPart]:
    """提示词在前，参考图按顺序在后。"""
    return (
        ContentBuilder()
        .text(request.prompt)
        .images(request.reference_images)
        .build()
    )


def build_edit_contents(request: EditRequest) -> list[ContentPart]:
    """编辑提示词、原图、参考图，蒙版（如有）放最后。"""
    builder = (
        ContentBuilder()
        .text(build_edit_prompt(request.instruction, has_mask=bool(request.mask_image)))
        .image(request.original_image)
        .images(request.reference_images)
    )
    if request.mask_image:
        builder.image(request.mask_image)
    return builder.build()


def build_segmentation_contents(request: SegmentationRequest) -> list[ContentPart]:
    return (
        ContentBuilder()
        .text(build_segmentation_prompt(request.query))
        .image(request.image)
        .build()
    )


def _first_candidate_parts(api_response: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = api_response.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return content.get("parts") or []


def extract_images(api_response: dict[str, Any]) -> list[str]:
    """按顺序提取第一个候选中的全部内联图片数据。"""
    images: list[str] = []
    for part in _first_candidate_parts(api_response):
        # 兼容 inlineData 和 inline_data
        inline_data = part.get("inlineData") or part.get("inline_data")
        if inline_data and inline_data.get("data"):
            images.append(inline_data["data"])
    return images


def extract_text(api_response: dict[str, Any]) -> str | None:
    """提取第一个候选中的第一段文本（跳过思考内容）。"""
    for part in _first_candidate_parts(api_response):
        if part.get("thought"):
            continue
        text = part.get("text")
        if isinstance(text, str) and text:
            return text
    return None


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    match = _CODE_FENCE_RE.match(text)
    return match.group(1) if match else text


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ImageGenClient:
    """Gemini 图像 API 客户端。

    应用启动时创建一次，并显式传递给需要的调用方。

    Example:
        client = ImageGenClient()
        images = await client.generate_image(GenerationRequest(
            prompt="A watercolor fox in the snow",
        ))
        await client.close()
    """

    def __init__(
        self,
        config: GeminiEnvConfig | None = None,
        event_callback: EventCallback | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """初始化客户端。

        Args:
            config: 环境配置（可选，默认从环境变量加载）
            event_callback: 事件回调函数
            session: 外部 HTTP 会话（可选，传入时由调用方负责关闭）
        """
        self._config = config or get_imagegen_config()
        self._event_callback = event_callback
        self._session = session
        self._owns_session = session is None

    @property
    def config(self) -> GeminiEnvConfig:
        return self._config

    async def _get_session(self) -> aiohttp.ClientSession:
        """获取或创建 HTTP 会话。"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """关闭 HTTP 会话。"""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> ImageGenClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _emit_event(self, event: dict[str, Any]) -> None:
        """发送事件到回调。"""
        if self._event_callback:
            self._event_callback(event)

    def _build_headers(self) -> dict[str, str]:
        # 支持 Bearer token 和 API key 两种认证方式
        api_key = self._config.api_key
        if api_key.startswith("Bearer "):
            return {"Content-Type": "application/json", "Authorization": api_key}
        return {"Content-Type": "application/json", "x-goog-api-key": api_key}

    def _build_request_body(
        self,
        contents: list[ContentPart],
        temperature: float | None = None,
        seed: int | None = None,
        modalities: list[str] | None = None,
    ) -> dict[str, Any]:
        """构建 API 请求体。"""
        body: dict[str, Any] = {
            "contents": [{"parts": [part.to_api() for part in contents]}],
        }

        generation_config: dict[str, Any] = {}
        if modalities:
            generation_config["responseModalities"] = list(modalities)
        if temperature is not None:
            generation_config["temperature"] = temperature
        if seed is not None:
            generation_config["seed"] = seed
        if generation_config:
            body["generationConfig"] = generation_config

        return body

    async def _call_api(self, body: dict[str, Any], request_id: str) -> dict[str, Any]:
        """发送 generateContent 请求。

        Raises:
            _ProviderResponseError: 非 200 响应
            aiohttp.ClientError: 网络错误
            asyncio.TimeoutError: 超时
        """
        url = self._config.generate_url
        headers = self._build_headers()

        logger.debug(
            f"[{request_id}] POST {url} headers={sanitize_headers(headers)} "
            f"body={sanitize_for_debug(body)}"
        )

        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self._config.timeout)
        async with session.post(url, json=body, headers=headers, timeout=timeout) as resp:
            if resp.status == 200:
                api_response = await resp.json()
                logger.debug(f"[{request_id}] response={sanitize_for_debug(api_response)}")
                return api_response

            error_text = await resp.text()
            raise _ProviderResponseError(
                resp.status,
                error_text,
                _parse_retry_after(resp.headers.get("Retry-After")),
            )

    async def _execute(
        self,
        action: str,
        body: dict[str, Any],
        image_count: int,
    ) -> dict[str, Any]:
        """执行一次调用，并把 provider 错误归一化为 ImageGenError。"""
        request_id = str(uuid.uuid4())[:8]
        self._emit_event({
            "type": "generation_started",
            "request_id": request_id,
            "operation": action,
            "image_count": image_count,
        })

        try:
            api_response = await self._call_api(body, request_id)

        except asyncio.CancelledError:
            # 取消错误必须 re-raise，不能被吞掉
            self._emit_event({
                "type": "generation_cancelled",
                "request_id": request_id,
                "operation": action,
            })
            raise

        except _ProviderResponseError as e:
            logger.error(
                f"Error during image {action} [{request_id}]: "
                f"HTTP {e.status_code}: {e.body[:500]}"
            )
            error = normalize_provider_error(
                match_error_shapes(e.payload, e.status_code),
                action,
                e.retry_after,
            )
            self._emit_failed(request_id, action, error)
            raise error from e

        except asyncio.TimeoutError as e:
            logger.error(f"Timeout during image {action} [{request_id}] after {self._config.timeout}s")
            error = normalize_provider_error(
                [FlatErrorShape(message=f"Request timed out after {self._config.timeout}s")],
                action,
            )
            self._emit_failed(request_id, action, error)
            raise error from e

        except Exception as e:
            logger.exception(f"Error during image {action} [{request_id}]: {e}")
            error = normalize_provider_error(match_error_shapes(e), action)
            self._emit_failed(request_id, action, error)
            raise error from e

        self._emit_event({
            "type": "generation_completed",
            "request_id": request_id,
            "operation": action,
            "success": True,
        })
        return api_response

    def _emit_failed(self, request_id: str, action: str, error: ImageGenError) -> None:
        self._emit_event({
            "type": "generation_failed",
            "request_id": request_id,
            "operation": action,
            "error": error.message,
            "auth_hint": mask_token(self._config.api_key),
        })

    async def generate_image(self, request: GenerationRequest) -> list[str]:
        """根据提示词（和可选参考图）生成图片。

        Args:
            request: 生成请求

        Returns:
            base64 图片列表，provider 只返回文本时为空列表

        Raises:
            ImageGenError: 调用失败（已归一化）
        """
        body = self._build_request_body(
            build_generation_contents(request),
            temperature=request.temperature,
            seed=request.seed,
            modalities=IMAGE_MODALITIES,
        )
        api_response = await self._execute("generate", body, len(request.reference_images))
        return extract_images(api_response)

    async def edit_image(self, request: EditRequest) -> list[str]:
        """按指令编辑图片，提供蒙版时只修改蒙版白色区域。

        Raises:
            ImageGenError: 调用失败（已归一化）
        """
        body = self._build_request_body(
            build_edit_contents(request),
            temperature=request.temperature,
            seed=request.seed,
            modalities=IMAGE_MODALITIES,
        )
        image_count = 1 + len(request.reference_images) + (1 if request.mask_image else 0)
        api_response = await self._execute("edit", body, image_count)
        return extract_images(api_response)

    async def segment_image(self, request: SegmentationRequest) -> SegmentationResult:
        """分割图片中 query 描述的目标区域。

        Raises:
            ImageGenError: 调用失败（已归一化）
            NoResponseTextError: 响应没有文本
            json.JSONDecodeError: 响应文本不是合法 JSON
            SegmentationFormatError: JSON 结构不符合 SegmentationResult
        """
        body = self._build_request_body(build_segmentation_contents(request))
        api_response = await self._execute("segment", body, 1)

        response_text = extract_text(api_response)
        if not response_text:
            logger.error("Error segmenting image: No response text received from API")
            raise NoResponseTextError()

        try:
            data = json.loads(_strip_code_fence(response_text))
        except json.JSONDecodeError as e:
            logger.error(f"Error segmenting image: response is not valid JSON ({e}): {response_text[:200]}")
            raise

        try:
            return SegmentationResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Segmentation response does not match expected shape: {e}")
            raise SegmentationFormatError(
                f"Unexpected segmentation response: {e.error_count()} validation error(s)"
            ) from e
