"""提示词模板。

gemini-imagegen v0.1.0
"""

from __future__ import annotations

__all__ = [
    "MASK_INSTRUCTION",
    "build_edit_prompt",
    "build_segmentation_prompt",
]

MASK_INSTRUCTION = (
    "\n\nIMPORTANT: Apply changes ONLY where the mask image shows white pixels "
    "(value 255). Leave all other areas completely unchanged. Respect the mask "
    "boundaries precisely and maintain seamless blending at the edges."
)

EDIT_PROMPT_TEMPLATE = """Edit this image according to the following instruction: {instruction}

Maintain the original image's lighting, perspective, and overall composition. Make the changes look natural and seamlessly integrated.{mask_instruction}

Preserve image quality and ensure the edit looks professional and realistic."""

SEGMENTATION_PROMPT_TEMPLATE = """Analyze this image and create a segmentation mask for: {query}

Return a JSON object with this exact structure:
{{
  "masks": [
    {{
      "label": "description of the segmented object",
      "box_2d": [x, y, width, height],
      "mask": "base64-encoded binary mask image"
    }}
  ]
}}

Only segment the specific object or region requested. The mask should be a binary PNG where white pixels (255) indicate the selected region and black pixels (0) indicate the background."""


def build_edit_prompt(instruction: str, has_mask: bool = False) -> str:
    """构建编辑提示词。

    有蒙版时追加 MASK_INSTRUCTION，限制修改范围。
    """
    return EDIT_PROMPT_TEMPLATE.format(
        instruction=instruction,
        mask_instruction=MASK_INSTRUCTION if has_mask else "",
    )


def build_segmentation_prompt(query: str) -> str:
    """构建分割提示词。"""
    return SEGMENTATION_PROMPT_TEMPLATE.format(query=query)
