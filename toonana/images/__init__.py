"""Image generation helpers for toonana."""

from .extraction import (
    StreamImageCollector,
    find_block_reason,
    find_http_uri,
    find_inline_image,
)
from .fallback import ImageFallbackChain, ImageRequest
from .formats import decode_base64_image, guess_image_extension, to_data_uri
from .gemini import GeminiImageClient
from .prompting import (
    CharacterReference,
    build_avatar_prompt,
    build_comic_image_prompt,
    build_storyboard_prompt,
)
from .renderer import RemoteRendererClient

__all__ = [
    "CharacterReference",
    "GeminiImageClient",
    "ImageFallbackChain",
    "ImageRequest",
    "RemoteRendererClient",
    "StreamImageCollector",
    "build_avatar_prompt",
    "build_comic_image_prompt",
    "build_storyboard_prompt",
    "decode_base64_image",
    "find_block_reason",
    "find_http_uri",
    "find_inline_image",
    "guess_image_extension",
    "to_data_uri",
]
