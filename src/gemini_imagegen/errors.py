"""gemini_imagegen 异常类与 provider 错误归一化。

gemini-imagegen v0.1.0

Gemini 接口返回的错误结构并不统一：
    {"error": {"code": 429, "message": "..."}}            # 官方 REST
    {"error": {"error": {"code": 429, "message": "..."}}}  # 代理/SDK 二次包装
    {"code": 429, "message": "..."}                       # 扁平结构 / 传输层异常

这里先把原始错误匹配为若干已知形态（tagged union），
再按固定优先级归一化为本模块的异常类型。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

__all__ = [
    "ImageGenError",
    "RateLimitExceededError",
    "ApiError",
    "GenericError",
    "UnknownError",
    "NoResponseTextError",
    "SegmentationFormatError",
    "FlatErrorShape",
    "NestedErrorShape",
    "DoublyNestedErrorShape",
    "ErrorShape",
    "match_error_shapes",
    "normalize_provider_error",
]

RATE_LIMIT_MESSAGE = (
    "Rate limit exceeded. Please wait a few minutes before trying again, "
    "or upgrade your Google AI Studio plan for higher quotas."
)


class ImageGenError(Exception):
    """gemini_imagegen 基础异常。

    Attributes:
        message: 面向调用方的错误消息
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RateLimitExceededError(ImageGenError):
    """触发限流或配额耗尽（429 / quota）。

    Attributes:
        retry_after: 建议重试等待时间（秒），来自 Retry-After 头
    """

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(RATE_LIMIT_MESSAGE)


class ApiError(ImageGenError):
    """provider 返回的业务错误（带错误消息）。

    Attributes:
        detail: provider 原始错误消息
        status_code: 错误码（未知时为 None）
    """

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"API Error: {detail}")


class GenericError(ImageGenError):
    """传输层或 SDK 层错误（网络、超时等）。"""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Error: {detail}")


class UnknownError(ImageGenError):
    """无法识别的错误。"""

    def __init__(self, action: str = "generate") -> None:
        self.action = action
        super().__init__(f"Failed to {action} image. Please try again.")


class NoResponseTextError(ImageGenError):
    """分割请求的响应中没有文本部分。"""

    def __init__(self) -> None:
        super().__init__("No response text received from API")


class SegmentationFormatError(ImageGenError):
    """分割响应是合法 JSON，但不符合 SegmentationResult 结构。"""
    pass


# =============================================================================
# 错误形态
# =============================================================================


@dataclass(frozen=True)
class FlatErrorShape:
    """顶层 {code, message}，或 HTTP 状态码 / 异常自身消息。"""
    code: int | None = None
    message: str | None = None


@dataclass(frozen=True)
class NestedErrorShape:
    """{error: {code, message}}。"""
    code: int | None = None
    message: str | None = None


@dataclass(frozen=True)
class DoublyNestedErrorShape:
    """{error: {error: {code, message}}}。"""
    code: int | None = None
    message: str | None = None


ErrorShape = Union[FlatErrorShape, NestedErrorShape, DoublyNestedErrorShape]


def _as_code(value: Any) -> int | None:
    """解析错误码，兼容字符串形式。"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_message(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _read_layer(layer: dict[str, Any]) -> tuple[int | None, str | None]:
    return _as_code(layer.get("code")), _as_message(layer.get("message"))


def match_error_shapes(
    payload: Any,
    status_code: int | None = None,
) -> list[ErrorShape]:
    """将原始错误匹配为已知形态列表。

    一个 payload 可能同时命中多种形态（例如顶层带 code，内层带 message），
    全部返回，由 normalize_provider_error 决定优先级。

    Args:
        payload: 解析后的错误体（dict）、异常对象或任意值
        status_code: HTTP 状态码（如有）

    Returns:
        命中的错误形态列表（可能为空）
    """
    shapes: list[ErrorShape] = []

    if isinstance(payload, BaseException):
        message = _as_message(str(payload))
        code = _as_code(getattr(payload, "code", None)) or _as_code(
            getattr(payload, "status", None)
        )
        if code is not None or message is not None:
            shapes.append(FlatErrorShape(code=code, message=message))
        return shapes

    if isinstance(payload, dict):
        code, message = _read_layer(payload)
        if code is None:
            code = status_code
        if code is not None or message is not None:
            shapes.append(FlatErrorShape(code=code, message=message))
        # 错误体里的 code 不能覆盖 HTTP 状态码
        if status_code is not None and status_code != code:
            shapes.append(FlatErrorShape(code=status_code))

        outer = payload.get("error")
        if isinstance(outer, dict):
            shapes.append(NestedErrorShape(*_read_layer(outer)))
            inner = outer.get("error")
            if isinstance(inner, dict):
                shapes.append(DoublyNestedErrorShape(*_read_layer(inner)))
        return shapes

    if status_code is not None or _as_message(payload) is not None:
        shapes.append(FlatErrorShape(code=status_code, message=_as_message(payload)))
    return shapes


def _is_rate_limited(shape: ErrorShape) -> bool:
    if shape.code == 429:
        return True
    if isinstance(shape, (NestedErrorShape, DoublyNestedErrorShape)):
        return shape.message is not None and "quota" in shape.message
    return False


def normalize_provider_error(
    shapes: list[ErrorShape],
    action: str = "generate",
    retry_after: float | None = None,
) -> ImageGenError:
    """按优先级把错误形态归一化为模块异常。

    优先级:
        1. 任一形态 code == 429，或内层消息包含 "quota" -> RateLimitExceededError
        2. 内层消息（先 error.message，再 error.error.message）-> ApiError
        3. 顶层消息 -> GenericError
        4. 其余 -> UnknownError

    Args:
        shapes: match_error_shapes 的结果
        action: 操作名（generate/edit/segment），用于兜底消息
        retry_after: Retry-After 头解析出的秒数

    Returns:
        归一化后的异常（由调用方 raise）
    """
    if any(_is_rate_limited(shape) for shape in shapes):
        return RateLimitExceededError(retry_after)

    for kind in (NestedErrorShape, DoublyNestedErrorShape):
        for shape in shapes:
            if isinstance(shape, kind) and shape.message:
                return ApiError(shape.message, shape.code)

    for shape in shapes:
        if isinstance(shape, FlatErrorShape) and shape.message:
            return GenericError(shape.message)

    return UnknownError(action)
