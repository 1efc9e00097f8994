import json
import threading

import pytest
import requests

from toonana import config_manager as cfg
from toonana.errors import (
    ConfigurationError,
    ImageProviderError,
    JobCancelledError,
    NoImageDataError,
    SafetyBlockedError,
)
from toonana.images.gemini import GeminiImageClient, build_request_body
from toonana.images.prompting import IMAGE_ONLY_SUFFIX
from toonana.progress import RenderProgress

from tests.helpers.fakes import FakeResponse, FakeSession, PNG_BASE64, PNG_BYTES


def _sse(payload) -> str:
    return "data: " + json.dumps(payload)


def _inline(data: str):
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": data}}]}}]}


def _client(session: FakeSession) -> GeminiImageClient:
    return GeminiImageClient("secret-key", model="image-model", session=session)


def _recording_progress():
    progress = RenderProgress()
    seen = []
    progress.register_observer(lambda event: seen.append(event.completed))
    return progress, seen


def test_missing_key_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="Gemini API key not set"):
        GeminiImageClient("   ")
    with pytest.raises(ConfigurationError):
        GeminiImageClient.from_settings(cfg.ToonanaSettings())


def test_request_body_includes_reference_and_modalities() -> None:
    reference = {"inlineData": {"mimeType": "image/png", "data": "REF"}}

    body = build_request_body("draw", reference, image_only=True)

    assert body["contents"][0]["parts"] == [{"text": "draw"}, reference]
    assert body["generationConfig"]["responseModalities"] == ["IMAGE"]
    assert build_request_body("draw")["generationConfig"]["responseModalities"] == ["IMAGE", "TEXT"]


def test_stream_returns_latest_inline_image_and_reports_progress() -> None:
    lines = [_sse({"candidates": []}), "", _sse(_inline("AAA")), _sse(_inline("BBB"))]
    session = FakeSession(post=[FakeResponse(lines=lines)])
    progress, seen = _recording_progress()

    result = _client(session).generate_stream("a prompt", progress=progress)

    assert result == "BBB"
    assert seen == [1, 3, 5, 7, 99, 100]
    call = session.post_calls[0]
    assert call["url"].endswith("/models/image-model:streamGenerateContent?alt=sse")
    assert call["headers"]["X-goog-api-key"] == "secret-key"
    assert call["stream"] is True


def test_stream_progress_stops_at_ceiling() -> None:
    lines = [_sse({"candidates": []})] * 60 + [_sse(_inline("IMG"))]
    session = FakeSession(post=[FakeResponse(lines=lines)])
    progress, seen = _recording_progress()

    _client(session).generate_stream("p", progress=progress)

    assert max(seen[:-2]) == 98
    assert seen[-2:] == [99, 100]
    assert seen == sorted(seen)


def test_stream_fetches_http_uri_with_provider_auth() -> None:
    uri = "https://generativelanguage.googleapis.com/v1beta/files/abc:download"
    lines = [_sse({"candidates": [{"content": {"parts": [{"fileData": {"fileUri": uri}}]}}]})]
    session = FakeSession(
        post=[FakeResponse(lines=lines)],
        get=[FakeResponse(content=PNG_BYTES)],
    )

    assert _client(session).generate_stream("p") == PNG_BASE64
    assert session.get_calls[0]["url"] == uri
    assert session.get_calls[0]["headers"] == {"X-goog-api-key": "secret-key"}


def test_foreign_uri_is_fetched_without_credentials() -> None:
    session = FakeSession(get=[FakeResponse(content=PNG_BYTES)])

    _client(session).fetch_uri("https://cdn.example.com/image.png")

    assert session.get_calls[0]["headers"] == {}


def test_stream_without_image_raises_no_image_data() -> None:
    session = FakeSession(post=[FakeResponse(lines=[_sse({"candidates": [{"finishReason": "STOP"}]})])])

    with pytest.raises(NoImageDataError, match="no image data received") as excinfo:
        _client(session).generate_stream("p")
    assert excinfo.value.provider == "gemini-stream"


def test_stream_safety_block_is_reported() -> None:
    session = FakeSession(post=[FakeResponse(lines=[_sse({"promptFeedback": {"blockReason": "SAFETY"}})])])

    with pytest.raises(SafetyBlockedError, match="SAFETY"):
        _client(session).generate_stream("p")


def test_stream_honours_cancellation() -> None:
    event = threading.Event()
    event.set()
    response = FakeResponse(lines=[_sse(_inline("AAA"))])
    session = FakeSession(post=[response])

    with pytest.raises(JobCancelledError):
        _client(session).generate_stream("p", cancel_event=event)
    assert response.closed


def test_http_error_carries_status_and_detail() -> None:
    session = FakeSession(post=[FakeResponse(status_code=429, text="quota exceeded")])

    with pytest.raises(ImageProviderError, match="HTTP 429: quota exceeded"):
        _client(session).generate_stream("p")


def test_transport_failure_is_wrapped() -> None:
    session = FakeSession(post=[requests.exceptions.ConnectTimeout("slow")])

    with pytest.raises(ImageProviderError, match="request failed") as excinfo:
        _client(session).generate_once("p")
    assert excinfo.value.provider == "gemini"


def test_generate_once_returns_inline_image() -> None:
    session = FakeSession(post=[FakeResponse(json_data=_inline("ONCE"))])

    assert _client(session).generate_once("p") == "ONCE"
    assert session.post_calls[0]["url"].endswith(":generateContent")


def test_retry_switches_to_image_only_when_first_answer_has_no_image() -> None:
    session = FakeSession(
        post=[
            FakeResponse(json_data={"candidates": [{"content": {"parts": [{"text": "Sure!"}]}}]}),
            FakeResponse(json_data=_inline("SECOND")),
        ]
    )

    assert _client(session).generate_with_retry("draw a cat") == "SECOND"
    retry_body = session.post_calls[1]["json"]
    assert retry_body["contents"][0]["parts"][0]["text"] == "draw a cat" + IMAGE_ONLY_SUFFIX
    assert retry_body["generationConfig"]["responseModalities"] == ["IMAGE"]


def test_retry_is_skipped_for_safety_blocks() -> None:
    session = FakeSession(post=[FakeResponse(json_data={"promptFeedback": {"blockReason": "SAFETY"}})])

    with pytest.raises(SafetyBlockedError):
        _client(session).generate_with_retry("p")
    assert len(session.post_calls) == 1


def test_unparseable_json_is_a_provider_error() -> None:
    session = FakeSession(post=[FakeResponse(json_error=ValueError("bad json"))])

    with pytest.raises(ImageProviderError, match="response parse error"):
        _client(session).generate_once("p")


def test_proxy_base_url_keeps_key_off_google_hosts() -> None:
    session = FakeSession(get=[FakeResponse(content=PNG_BYTES), FakeResponse(content=PNG_BYTES)])
    client = GeminiImageClient(
        "secret-key", base_url="https://proxy.internal.example/v1beta", session=session
    )

    client.fetch_uri("https://storage.googleapis.com/bucket/image.png")
    client.fetch_uri("https://proxy.internal.example/files/abc:download")

    assert session.get_calls[0]["headers"] == {}
    assert session.get_calls[1]["headers"] == {"X-goog-api-key": "secret-key"}


def test_default_base_url_shares_key_with_google_hosts() -> None:
    session = FakeSession(get=[FakeResponse(content=PNG_BYTES)])

    _client(session).fetch_uri("https://storage.googleapis.com/bucket/image.png")

    assert session.get_calls[0]["headers"] == {"X-goog-api-key": "secret-key"}
