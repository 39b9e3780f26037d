"""gemini-imagegen - Gemini 图像生成/编辑/分割客户端。

环境变量:
    GEMINI_API_KEY: API key（回退到 GOOGLE_API_KEY）
    GEMINI_IMAGE_MODEL: 模型 ID
    GEMINI_ENDPOINT: API 端点 URL
    GEMINI_TIMEOUT: 请求超时（秒）
"""

from __future__ import annotations

__version__ = "0.1.0"

from .client import ImageGenClient
from .config import (
    DEFAULT_MODEL,
    GeminiEnvConfig,
    get_imagegen_config,
)
from .errors import (
    ApiError,
    GenericError,
    ImageGenError,
    NoResponseTextError,
    RateLimitExceededError,
    SegmentationFormatError,
    UnknownError,
)
from .image_codec import decode_base64_image
from .types import (
    ContentBuilder,
    ContentPart,
    EditRequest,
    GenerationRequest,
    InlineImagePart,
    SegmentationMask,
    SegmentationRequest,
    SegmentationResult,
    TextPart,
)

__all__ = [
    "__version__",
    # Client
    "ImageGenClient",
    # Config
    "DEFAULT_MODEL",
    "GeminiEnvConfig",
    "get_imagegen_config",
    # Errors
    "ImageGenError",
    "RateLimitExceededError",
    "ApiError",
    "GenericError",
    "UnknownError",
    "NoResponseTextError",
    "SegmentationFormatError",
    # Types
    "ContentBuilder",
    "ContentPart",
    "TextPart",
    "InlineImagePart",
    "GenerationRequest",
    "EditRequest",
    "SegmentationRequest",
    "SegmentationMask",
    "SegmentationResult",
    # Codec
    "decode_base64_image",
]
