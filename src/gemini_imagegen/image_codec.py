"""图片解码工具。

gemini-imagegen v0.1.0

客户端只透传 base64，这里仅用于把分割蒙版还原为 PNG 字节。
"""

from __future__ import annotations

import base64
import binascii

__all__ = ["decode_base64_image"]


def decode_base64_image(data: str) -> bytes:
    """解码 base64 图片数据，兼容 data URL 前缀。

    Raises:
        ValueError: 不是合法的 base64
    """
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e
