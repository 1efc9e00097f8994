import json

import pytest
import requests

from toonana import config_manager as cfg
from toonana.errors import LLMClientError, LLMServerUnavailableError
from toonana.llm_client import (
    ClientSettings,
    LLMClient,
    create_client,
    iter_response_fragments,
)

from tests.helpers.fakes import FakeResponse, FakeSession


def _ndjson(*payloads) -> list:
    return [json.dumps(payload) for payload in payloads]


def test_fragments_skip_malformed_and_empty_lines() -> None:
    lines = ['{"response": "Pan"}', "not json", "", '{"done": true}', b'{"response": "el"}']

    assert list(iter_response_fragments(lines)) == ["Pan", "el"]


def test_generate_streaming_delivers_chunks_in_order() -> None:
    session = FakeSession(
        post=[FakeResponse(lines=_ndjson({"response": "Panel 1"}, {"response": "\nCaption"}, {"done": True}))]
    )
    client = LLMClient(ClientSettings(base_url="http://ollama.local/", model="tiny"), session=session)
    chunks = []

    text = client.generate_streaming("storyboard please", chunks.append)

    assert text == "Panel 1\nCaption"
    assert chunks == ["Panel 1", "\nCaption"]
    call = session.post_calls[0]
    assert call["url"] == "http://ollama.local/api/generate"
    assert call["json"] == {"model": "tiny", "prompt": "storyboard please", "stream": True}
    assert call["stream"] is True


def test_sampling_options_are_forwarded() -> None:
    session = FakeSession(post=[FakeResponse(json_data={"response": "ok"})])
    client = LLMClient(ClientSettings(temperature=0.2, top_p=0.9), session=session)

    assert client.generate("hi", model="other") == "ok"
    payload = session.post_calls[0]["json"]
    assert payload["model"] == "other"
    assert payload["options"] == {"temperature": 0.2, "top_p": 0.9}


def test_connection_error_means_server_unavailable() -> None:
    session = FakeSession(post=[requests.exceptions.ConnectionError("refused")])

    with pytest.raises(LLMServerUnavailableError, match="port 11434"):
        LLMClient(session=session).generate_streaming("p", lambda _chunk: None)


@pytest.mark.parametrize("status_code", [404, 502])
def test_missing_route_or_bad_gateway_means_unavailable(status_code: int) -> None:
    session = FakeSession(post=[FakeResponse(status_code=status_code)])

    with pytest.raises(LLMServerUnavailableError):
        LLMClient(session=session).generate("p")


def test_other_http_errors_are_client_errors() -> None:
    session = FakeSession(post=[FakeResponse(status_code=500, text="kaboom")])

    with pytest.raises(LLMClientError, match="HTTP 500"):
        LLMClient(session=session).generate("p")


def test_generate_joins_list_responses() -> None:
    session = FakeSession(post=[FakeResponse(json_data=[{"response": "a"}, {"response": "b"}])])

    assert LLMClient(session=session).generate("p") == "ab"


def test_generate_rejects_unexpected_payload() -> None:
    session = FakeSession(post=[FakeResponse(json_data={"message": "?"})])

    with pytest.raises(LLMClientError, match="Unexpected Ollama response format"):
        LLMClient(session=session).generate("p")


def test_health_lists_models() -> None:
    session = FakeSession(get=[FakeResponse(json_data={"models": [{"name": "gemma3:1b"}, {"size": 1}]})])

    health = LLMClient(session=session).check_health()

    assert health.ok
    assert health.models == ["gemma3:1b"]
    assert session.get_calls[0]["url"].endswith("/api/tags")


def test_health_reports_failures_without_raising() -> None:
    session = FakeSession(get=[requests.exceptions.ConnectionError("refused"), FakeResponse(status_code=503)])
    client = LLMClient(session=session)

    assert client.check_health().ok is False
    assert client.check_health().message == "HTTP 503"


def test_create_client_uses_settings() -> None:
    settings = cfg.ToonanaSettings(
        ollama_base_url="http://10.0.0.2:11434/",
        default_ollama_model="llama3",
        ollama_temperature=0.5,
    )

    client = create_client(settings, session=FakeSession())

    assert client.base_url == "http://10.0.0.2:11434"
    assert client.model == "llama3"
    assert client.settings.temperature == 0.5
