"""Best-effort image extraction from schema-drifting provider JSON.

Provider responses change shape between API versions, so nothing here maps
them onto typed models. The helpers walk a generic decoded JSON tree and
return the first value that looks like image data.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Union

JSONValue = Union[dict, list, str, int, float, bool, None]

_INLINE_KEYS = ("inlineData", "inline_data", "InlineData", "inlinedata", "INLINE_DATA")
_INLINE_DATA_KEYS = ("data", "Data", "DATA")
_ALTERNATE_BASE64_KEYS = (
    "bytesBase64Encoded",
    "bytes_base64_encoded",
    "b64_json",
    "b64Json",
    "imageBase64",
    "image_base64",
    "ImageBase64",
    "base64Image",
    "base64_image",
)
_MEDIA_KEYS = ("media", "Media")
_DATA_URI_LIST_KEYS = ("dataUris", "data_uris", "DataUris", "datauris")
_FILE_KEYS = ("fileData", "file_data", "FileData", "filedata")
_FILE_URI_KEYS = ("fileUri", "file_uri", "FileUri", "fileuri")

_SAFETY_FINISH_REASONS = frozenset(
    {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}
)

_EVENT_STREAM_PREFIX = "data:"


def _first_key(mapping: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


def _non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _inline_payload(value: Any) -> Optional[str]:
    """Return the base64 ``data`` of an inline-data object."""

    if not isinstance(value, dict):
        return None
    return _non_empty_string(_first_key(value, _INLINE_DATA_KEYS))


def _file_uri(value: Any) -> Optional[str]:
    if not isinstance(value, dict):
        return None
    return _non_empty_string(_first_key(value, _FILE_URI_KEYS))


def _match_object(node: dict) -> Optional[str]:
    # inlineData / inline_data parts
    payload = _inline_payload(_first_key(node, _INLINE_KEYS))
    if payload:
        return payload

    # bare base64 fields such as b64_json
    for key in _ALTERNATE_BASE64_KEYS:
        payload = _non_empty_string(node.get(key))
        if payload:
            return payload

    # media arrays whose items hold inline data
    media = _first_key(node, _MEDIA_KEYS)
    if isinstance(media, list):
        for item in media:
            if isinstance(item, dict):
                payload = _inline_payload(_first_key(item, _INLINE_KEYS))
                if payload:
                    return payload

    # lists of data: URIs
    uris = _first_key(node, _DATA_URI_LIST_KEYS)
    if isinstance(uris, list):
        for uri in uris:
            if isinstance(uri, str) and uri.startswith("data:"):
                return uri

    # fileData whose URI is already a data: URI
    uri = _file_uri(_first_key(node, _FILE_KEYS))
    if uri and uri.startswith("data:"):
        return uri
    return None


def _search_structured(value: JSONValue) -> Optional[str]:
    if isinstance(value, dict):
        found = _match_object(value)
        if found:
            return found
        for child in value.values():
            found = _search_structured(child)
            if found:
                return found
    elif isinstance(value, list):
        for child in value:
            found = _search_structured(child)
            if found:
                return found
    return None


def _iter_strings(value: JSONValue) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for child in value.values():
            yield from _iter_strings(child)
    elif isinstance(value, list):
        for child in value:
            yield from _iter_strings(child)


def find_inline_image(value: JSONValue) -> Optional[str]:
    """Return the first inline image payload found anywhere in ``value``.

    The result is either raw base64 or a ``data:`` URI. Structured fields are
    searched depth-first before any string is considered on its own, so a
    stray ``data:image/...`` value only wins when nothing structured matched.
    """

    found = _search_structured(value)
    if found:
        return found
    for text in _iter_strings(value):
        if text.startswith("data:image/"):
            return text
    return None


def find_http_uri(value: JSONValue) -> Optional[str]:
    """Return the first HTTP(S) file URI referenced in ``value``."""

    if isinstance(value, dict):
        uri = _file_uri(_first_key(value, _FILE_KEYS))
        if uri and uri.startswith(("http://", "https://")):
            return uri
        uris = _first_key(value, _DATA_URI_LIST_KEYS)
        if isinstance(uris, list):
            for candidate in uris:
                if isinstance(candidate, str) and candidate.startswith(("http://", "https://")):
                    return candidate
        children: Iterable[JSONValue] = value.values()
    elif isinstance(value, list):
        children = value
    else:
        return None
    for child in children:
        found = find_http_uri(child)
        if found:
            return found
    return None


def find_block_reason(value: JSONValue) -> Optional[str]:
    """Return the provider's safety block reason, if the response carries one."""

    if not isinstance(value, dict):
        return None
    feedback = _first_key(value, ("promptFeedback", "prompt_feedback"))
    if isinstance(feedback, dict):
        reason = _non_empty_string(_first_key(feedback, ("blockReason", "block_reason")))
        if reason:
            return reason
    candidates = value.get("candidates")
    if isinstance(candidates, list):
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            reason = _first_key(candidate, ("finishReason", "finish_reason"))
            if isinstance(reason, str) and reason.upper() in _SAFETY_FINISH_REASONS:
                return reason
    return None


def parse_stream_line(line: Union[str, bytes]) -> Optional[JSONValue]:
    """Decode one NDJSON or event-stream line; return ``None`` when malformed."""

    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    stripped = line.strip()
    if stripped.startswith(_EVENT_STREAM_PREFIX):
        stripped = stripped[len(_EVENT_STREAM_PREFIX):].strip()
    if not stripped:
        return None
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        return None


@dataclass
class StreamImageCollector:
    """Accumulate image candidates across a streamed response.

    Later fragments replace earlier ones; providers may send placeholder
    frames before the final image.
    """

    inline_image: Optional[str] = None
    http_uri: Optional[str] = None
    block_reason: Optional[str] = None
    lines_seen: int = 0

    def feed(self, line: Union[str, bytes]) -> bool:
        """Consume one line; return whether it parsed as JSON."""

        fragment = parse_stream_line(line)
        if fragment is None:
            return False
        self.lines_seen += 1
        inline = find_inline_image(fragment)
        if inline:
            self.inline_image = inline
        uri = find_http_uri(fragment)
        if uri:
            self.http_uri = uri
        reason = find_block_reason(fragment)
        if reason:
            self.block_reason = reason
        return True

    def feed_all(self, lines: Iterable[Union[str, bytes]]) -> "StreamImageCollector":
        for line in lines:
            self.feed(line)
        return self


def extract_image_from_lines(lines: Iterable[Union[str, bytes]]) -> Optional[str]:
    """Return the most recent inline image found in an NDJSON body."""

    return StreamImageCollector().feed_all(lines).inline_image


__all__ = [
    "JSONValue",
    "StreamImageCollector",
    "extract_image_from_lines",
    "find_block_reason",
    "find_http_uri",
    "find_inline_image",
    "parse_stream_line",
]
