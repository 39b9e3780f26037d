"""类型、提示词和编解码测试。"""

from __future__ import annotations

import base64

import pytest
from pydantic import ValidationError

from gemini_imagegen.image_codec import decode_base64_image
from gemini_imagegen.prompts import (
    MASK_INSTRUCTION,
    build_edit_prompt,
    build_segmentation_prompt,
)
from gemini_imagegen.types import (
    ContentBuilder,
    InlineImagePart,
    SegmentationMask,
    SegmentationResult,
    TextPart,
)


# =============================================================================
# 内容部分
# =============================================================================


class TestContentParts:
    """TextPart / InlineImagePart 序列化测试。"""

    def test_text_part(self):
        assert TextPart("hello").to_api() == {"text": "hello"}

    def test_inline_image_part_defaults_to_png(self):
        assert InlineImagePart("QUJD").to_api() == {
            "inline_data": {"mime_type": "image/png", "data": "QUJD"}
        }

    def test_inline_image_part_mime_override(self):
        part = InlineImagePart("QUJD", mime_type="image/jpeg")
        assert part.to_api()["inline_data"]["mime_type"] == "image/jpeg"


class TestContentBuilder:
    """ContentBuilder 测试。"""

    def test_preserves_order(self):
        parts = ContentBuilder().text("p").image("a").images(["b", "c"]).build()
        assert parts == [
            TextPart("p"),
            InlineImagePart("a"),
            InlineImagePart("b"),
            InlineImagePart("c"),
        ]

    def test_empty_images(self):
        assert ContentBuilder().text("p").images([]).build() == [TextPart("p")]

    def test_build_returns_copy(self):
        builder = ContentBuilder().text("p")
        parts = builder.build()
        builder.image("a")
        assert parts == [TextPart("p")]


# =============================================================================
# 提示词
# =============================================================================


class TestEditPrompt:
    """编辑提示词测试。"""

    def test_contains_instruction_and_framing(self):
        prompt = build_edit_prompt("make the sky purple")
        assert "Edit this image according to the following instruction: make the sky purple" in prompt
        assert "lighting, perspective, and overall composition" in prompt
        assert prompt.endswith("Preserve image quality and ensure the edit looks professional and realistic.")

    def test_no_mask_clause_without_mask(self):
        assert MASK_INSTRUCTION not in build_edit_prompt("x", has_mask=False)
        assert "white pixels" not in build_edit_prompt("x")

    def test_mask_clause_with_mask(self):
        prompt = build_edit_prompt("x", has_mask=True)
        assert MASK_INSTRUCTION in prompt
        assert "value 255" in prompt


class TestSegmentationPrompt:
    """分割提示词测试。"""

    def test_embeds_query_and_schema(self):
        prompt = build_segmentation_prompt("the red car")
        assert "create a segmentation mask for: the red car" in prompt
        assert '"box_2d": [x, y, width, height]' in prompt
        assert "white pixels (255)" in prompt
        assert "black pixels (0)" in prompt


# =============================================================================
# 分割结果
# =============================================================================


class TestSegmentationResult:
    """SegmentationResult 校验测试。"""

    def test_empty_masks(self):
        assert SegmentationResult.model_validate({"masks": []}) == SegmentationResult(masks=[])

    def test_missing_masks_rejected(self):
        """缺少 masks 字段不能当作空结果。"""
        with pytest.raises(ValidationError):
            SegmentationResult.model_validate({})

    def test_box_2d_alias(self):
        result = SegmentationResult.model_validate({
            "masks": [{"label": "car", "box_2d": [1, 2, 30, 40], "mask": "QUJD"}],
        })
        mask = result.masks[0]
        assert mask.label == "car"
        assert mask.box == (1, 2, 30, 40)
        assert mask.mask == "QUJD"

    def test_populate_by_name(self):
        mask = SegmentationMask(label="car", box=(0, 0, 1, 1), mask="QUJD")
        assert mask.box == (0, 0, 1, 1)

    def test_extra_fields_ignored(self):
        result = SegmentationResult.model_validate({
            "masks": [{"label": "a", "box_2d": [0, 0, 1, 1], "mask": "QUJD", "score": 0.9}],
            "note": "ignored",
        })
        assert len(result.masks) == 1

    def test_wrong_box_length_rejected(self):
        with pytest.raises(ValidationError):
            SegmentationResult.model_validate({
                "masks": [{"label": "a", "box_2d": [0, 0, 1], "mask": "QUJD"}],
            })

    def test_mask_bytes(self):
        data = base64.b64encode(b"\x89PNG").decode()
        mask = SegmentationMask(label="a", box=(0, 0, 1, 1), mask=data)
        assert mask.mask_bytes() == b"\x89PNG"


# =============================================================================
# 编解码
# =============================================================================


class TestImageCodec:
    """image_codec 测试。"""

    def test_decode_data_url(self):
        assert decode_base64_image("data:image/png;base64,QUJD") == b"ABC"

    def test_decode_invalid(self):
        with pytest.raises(ValueError):
            decode_base64_image("not base64!!")
