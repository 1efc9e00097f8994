"""Image payload helpers: base64 decoding, container sniffing and data URIs."""

from __future__ import annotations

import base64
import binascii
import re
from pathlib import Path

from ..errors import ImageDecodeError

_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_JPEG_SIGNATURE = b"\xff\xd8\xff"
_WHITESPACE = re.compile(r"\s+")

_MIME_BY_EXTENSION = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}


def strip_data_uri_prefix(value: str) -> str:
    """Return the payload after the first comma, or ``value`` if there is none."""

    _, separator, payload = value.partition(",")
    return payload if separator else value


def decode_base64_image(value: str) -> bytes:
    """Decode a raw base64 string or ``data:`` URI into bytes.

    Raises :class:`ImageDecodeError` when the payload is not valid base64.
    """

    candidate = _WHITESPACE.sub("", strip_data_uri_prefix(value or ""))
    if not candidate:
        raise ImageDecodeError("base64 decode: empty payload")
    try:
        return base64.b64decode(candidate, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError(f"base64 decode: {exc}") from exc


def guess_image_extension(data: bytes) -> str:
    """Return ``png``, ``jpg`` or ``webp`` from magic bytes, defaulting to ``png``."""

    if data[:8] == _PNG_SIGNATURE:
        return "png"
    if data[:3] == _JPEG_SIGNATURE:
        return "jpg"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return "png"


def mime_type_for_extension(extension: str) -> str:
    return _MIME_BY_EXTENSION.get(extension.lower().lstrip("."), "image/png")


def mime_type_for_path(path: Path) -> str:
    """Return the image mime type implied by ``path``'s suffix."""

    return mime_type_for_extension(Path(path).suffix)


def to_data_uri(value: str) -> str:
    """Wrap a base64 payload in a ``data:`` URI with a sniffed mime type.

    Values that already are ``data:`` URIs pass through unchanged; payloads
    that cannot be decoded are labelled ``image/png``.
    """

    if value.startswith("data:"):
        return value
    try:
        mime = mime_type_for_extension(guess_image_extension(decode_base64_image(value)))
    except ImageDecodeError:
        mime = "image/png"
    return f"data:{mime};base64,{value}"


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


__all__ = [
    "decode_base64_image",
    "encode_base64",
    "guess_image_extension",
    "mime_type_for_extension",
    "mime_type_for_path",
    "strip_data_uri_prefix",
    "to_data_uri",
]
