"""gemini_imagegen 类型定义。

gemini-imagegen v0.1.0
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from .image_codec import decode_base64_image

__all__ = [
    "DEFAULT_MIME_TYPE",
    "TextPart",
    "InlineImagePart",
    "ContentPart",
    "ContentBuilder",
    "GenerationRequest",
    "EditRequest",
    "SegmentationRequest",
    "SegmentationMask",
    "SegmentationResult",
]

DEFAULT_MIME_TYPE = "image/png"


# =============================================================================
# 请求内容部分
# =============================================================================


@dataclass(frozen=True)
class TextPart:
    """文本内容。"""
    text: str

    def to_api(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class InlineImagePart:
    """内联图片（base64）。

    Attributes:
        data: base64 编码的图片数据
        mime_type: MIME 类型
    """
    data: str
    mime_type: str = DEFAULT_MIME_TYPE

    def to_api(self) -> dict[str, Any]:
        return {
            "inline_data": {
                "mime_type": self.mime_type,
                "data": self.data,
            }
        }


ContentPart = Union[TextPart, InlineImagePart]


class ContentBuilder:
    """按顺序构建请求内容列表。

    Example:
        parts = (
            ContentBuilder()
            .text("A red bicycle")
            .images(reference_images)
            .build()
        )
    """

    def __init__(self) -> None:
        self._parts: list[ContentPart] = []

    def text(self, text: str) -> ContentBuilder:
        self._parts.append(TextPart(text))
        return self

    def image(self, data: str, mime_type: str = DEFAULT_MIME_TYPE) -> ContentBuilder:
        self._parts.append(InlineImagePart(data, mime_type))
        return self

    def images(self, images: list[str]) -> ContentBuilder:
        """按输入顺序追加多张图片。"""
        for data in images:
            self.image(data)
        return self

    def build(self) -> list[ContentPart]:
        return list(self._parts)


# =============================================================================
# 请求
# =============================================================================


@dataclass
class GenerationRequest:
    """图像生成请求。

    Attributes:
        prompt: 自然语言提示词
        reference_images: 参考图片（base64），按顺序发送
        temperature: 控制随机性（None 时使用模型默认值）
        seed: 随机种子（None 时不固定）
    """
    prompt: str
    reference_images: list[str] = field(default_factory=list)
    temperature: float | None = None
    seed: int | None = None


@dataclass
class EditRequest:
    """图像编辑请求。

    Attributes:
        instruction: 编辑指令
        original_image: 被编辑的原图（base64）
        reference_images: 参考图片（base64）
        mask_image: 蒙版（base64 PNG，255 表示可编辑区域）
        temperature: 控制随机性
        seed: 随机种子
    """
    instruction: str
    original_image: str
    reference_images: list[str] = field(default_factory=list)
    mask_image: str | None = None
    temperature: float | None = None
    seed: int | None = None


@dataclass
class SegmentationRequest:
    """图像分割请求。

    Attributes:
        image: 输入图片（base64）
        query: 目标区域描述，如 "the red car"
    """
    image: str
    query: str


# =============================================================================
# 分割结果
# =============================================================================


class SegmentationMask(BaseModel):
    """单个分割结果。

    Attributes:
        label: 目标描述
        box: (x, y, width, height)，响应中字段名为 box_2d
        mask: base64 编码的二值 PNG（255 = 选中，0 = 背景）
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    label: str
    box: tuple[int, int, int, int] = Field(alias="box_2d")
    mask: str

    def mask_bytes(self) -> bytes:
        """解码蒙版 PNG 数据。"""
        return decode_base64_image(self.mask)


class SegmentationResult(BaseModel):
    """分割响应。"""

    model_config = ConfigDict(extra="ignore")

    masks: list[SegmentationMask]
