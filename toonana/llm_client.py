"""Client for the local Ollama text-generation server."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import requests

from . import config_manager as cfg
from . import logging_manager as log_mgr
from .errors import LLMClientError, LLMServerUnavailableError

logger = log_mgr.get_logger().getChild("llm")

ChunkCallback = Callable[[str], None]

# Ollama answers 404 for an unknown route and proxies answer 502 when the
# backing server is down; both mean "start the local server".
_UNAVAILABLE_STATUS_CODES = frozenset({404, 502})


@dataclass(frozen=True)
class ClientSettings:
    """Immutable collection of configuration parameters for an :class:`LLMClient`."""

    base_url: str = cfg.DEFAULT_OLLAMA_URL
    model: str = cfg.DEFAULT_OLLAMA_MODEL
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    timeout_seconds: float = 120.0
    connect_timeout_seconds: float = 10.0
    debug: bool = False

    @classmethod
    def from_settings(cls, settings: cfg.ToonanaSettings) -> "ClientSettings":
        return cls(
            base_url=settings.resolve_ollama_url(),
            model=settings.resolve_ollama_model(),
            temperature=settings.ollama_temperature,
            top_p=settings.ollama_top_p,
            debug=settings.debug,
        )


@dataclass
class OllamaHealth:
    """Result of probing the Ollama tags endpoint."""

    ok: bool
    message: Optional[str] = None
    models: Optional[List[str]] = None


def parse_response_fragment(line: str | bytes) -> Optional[str]:
    """Return the ``response`` text carried by one NDJSON line, if any."""

    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    stripped = line.strip()
    if not stripped:
        return None
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    fragment = payload.get("response")
    if isinstance(fragment, str) and fragment:
        return fragment
    return None


def iter_response_fragments(lines: Iterable[str | bytes]) -> Iterator[str]:
    """Yield non-empty ``response`` fragments from NDJSON ``lines`` in order."""

    for line in lines:
        fragment = parse_response_fragment(line)
        if fragment is not None:
            yield fragment


class LLMClient:
    """Stateless helper for issuing generate requests against the Ollama API."""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._session = session or requests.Session()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def model(self) -> str:
        return self._settings.model

    @property
    def base_url(self) -> str:
        return self._settings.base_url.rstrip("/")

    @property
    def _timeout(self) -> Tuple[float, float]:
        return (self._settings.connect_timeout_seconds, self._settings.timeout_seconds)

    def _log_debug(self, message: str, *args: Any) -> None:
        if self._settings.debug:
            logger.debug(message, *args)

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------
    def _build_payload(self, prompt: str, *, model: Optional[str], stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "prompt": prompt,
            "stream": stream,
        }
        options: Dict[str, float] = {}
        if self._settings.temperature is not None:
            options["temperature"] = float(self._settings.temperature)
        if self._settings.top_p is not None:
            options["top_p"] = float(self._settings.top_p)
        if options:
            payload["options"] = options
        return payload

    def _post_generate(self, payload: Dict[str, Any], *, stream: bool) -> requests.Response:
        url = f"{self.base_url}/api/generate"
        self._log_debug("Dispatching Ollama request to %s with stream=%s", url, stream)
        try:
            response = self._session.post(
                url,
                json=payload,
                stream=stream,
                timeout=self._timeout,
            )
        except requests.exceptions.ConnectionError as exc:
            raise LLMServerUnavailableError() from exc
        except requests.exceptions.RequestException as exc:
            raise LLMClientError(f"ollama request failed: {exc}") from exc

        if response.status_code in _UNAVAILABLE_STATUS_CODES:
            response.close()
            raise LLMServerUnavailableError()
        if not 200 <= response.status_code < 300:
            body_preview = response.text[:300]
            response.close()
            self._log_debug(
                "Received non-success response: %s - %s",
                response.status_code,
                body_preview,
            )
            raise LLMClientError(f"ollama error: HTTP {response.status_code}")
        return response

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def iter_generate(self, prompt: str, *, model: Optional[str] = None) -> Iterator[str]:
        """Stream ``prompt`` through the model and yield text fragments as they arrive.

        Lines that are not valid JSON are skipped. Transport failures while
        reading the body raise :class:`LLMClientError`.
        """

        payload = self._build_payload(prompt, model=model, stream=True)
        response = self._post_generate(payload, stream=True)
        try:
            response.encoding = "utf-8"
            yield from iter_response_fragments(response.iter_lines(decode_unicode=True))
        except requests.exceptions.RequestException as exc:
            raise LLMClientError(f"ollama stream error: {exc}") from exc
        finally:
            response.close()

    def generate_streaming(
        self,
        prompt: str,
        on_chunk: ChunkCallback,
        *,
        model: Optional[str] = None,
    ) -> str:
        """Deliver each fragment to ``on_chunk`` and return the concatenated text."""

        parts: List[str] = []
        for fragment in self.iter_generate(prompt, model=model):
            parts.append(fragment)
            on_chunk(fragment)
        return "".join(parts)

    def generate(self, prompt: str, *, model: Optional[str] = None) -> str:
        """Return the full completion for ``prompt`` using a non-streaming request."""

        payload = self._build_payload(prompt, model=model, stream=False)
        response = self._post_generate(payload, stream=False)
        try:
            data = response.json()
        except ValueError as exc:
            raise LLMClientError(f"response parse error: {exc}") from exc

        if isinstance(data, dict) and isinstance(data.get("response"), str):
            return data["response"]
        # Some servers return a list of fragments even when stream=false.
        if isinstance(data, list):
            text = "".join(
                item["response"]
                for item in data
                if isinstance(item, dict) and isinstance(item.get("response"), str)
            )
            if text:
                return text
        raise LLMClientError("Unexpected Ollama response format")

    def check_health(self) -> OllamaHealth:
        """Probe the tags endpoint; failures are reported, never raised."""

        url = f"{self.base_url}/api/tags"
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            return OllamaHealth(ok=False, message=str(exc))
        if not 200 <= response.status_code < 300:
            return OllamaHealth(ok=False, message=f"HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            return OllamaHealth(ok=False, message=f"response parse error: {exc}")
        if not isinstance(data, dict):
            data = {}
        models = [
            str(entry["name"])
            for entry in (data.get("models") or [])
            if isinstance(entry, dict) and entry.get("name")
        ]
        return OllamaHealth(ok=True, models=models)

    def list_models(self) -> List[str]:
        return self.check_health().models or []

    def close(self) -> None:
        """Release any network resources associated with this client."""

        self._session.close()

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()


def create_client(
    settings: cfg.ToonanaSettings,
    *,
    session: Optional[requests.Session] = None,
) -> LLMClient:
    """Return a new :class:`LLMClient` configured from application ``settings``."""

    return LLMClient(ClientSettings.from_settings(settings), session=session)


__all__ = [
    "ClientSettings",
    "LLMClient",
    "OllamaHealth",
    "create_client",
    "iter_response_fragments",
    "parse_response_fragment",
]
