"""Exception types raised across the generation pipeline."""

from __future__ import annotations

from typing import Optional, Sequence


class ToonanaError(RuntimeError):
    """Base class for pipeline failures surfaced to job status."""


class ConfigurationError(ToonanaError):
    """Raised when a provider is missing a required endpoint or key."""


class EntryNotFoundError(ToonanaError):
    """Raised when a journal entry cannot be loaded."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"entry not found: {entry_id}")
        self.entry_id = entry_id


class InvalidEntryIdError(ToonanaError):
    """Raised when an entry id would address a path outside its images folder."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"invalid entry id: {entry_id!r}")
        self.entry_id = entry_id


class LLMClientError(ToonanaError):
    """Raised when the text-generation server fails or returns an error."""


class LLMServerUnavailableError(LLMClientError):
    """Raised when the local Ollama server cannot be reached."""

    DEFAULT_MESSAGE = "Ollama server not reachable. Is it running on port 11434?"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)


class ImageProviderError(ToonanaError):
    """Raised when an image provider fails or returns no usable image."""

    def __init__(self, message: str, *, provider: str = "image") -> None:
        super().__init__(message)
        self.provider = provider


class SafetyBlockedError(ImageProviderError):
    """Raised when a provider explicitly refuses a prompt on safety grounds."""


class NoImageDataError(ImageProviderError):
    """Raised when a provider response carries neither inline data nor a URI."""


class FallbackExhaustedError(ImageProviderError):
    """Raised when every provider in a fallback chain failed."""

    def __init__(self, failures: Sequence[ImageProviderError]) -> None:
        causes = "; ".join(f"{error.provider}: {error}" for error in failures)
        super().__init__(
            f"image generation failed ({causes})" if causes else "image generation failed",
            provider="fallback",
        )
        self.failures = tuple(failures)


class ImageDecodeError(ToonanaError):
    """Raised when an image payload is not valid base64."""


class JobCancelledError(ToonanaError):
    """Raised from worker threads once a job's cancellation token is set."""


class JobStageError(ToonanaError):
    """Raised by a job stage with the message recorded as the failure reason."""


__all__ = [
    "ToonanaError",
    "ConfigurationError",
    "EntryNotFoundError",
    "InvalidEntryIdError",
    "LLMClientError",
    "LLMServerUnavailableError",
    "ImageProviderError",
    "SafetyBlockedError",
    "NoImageDataError",
    "FallbackExhaustedError",
    "ImageDecodeError",
    "JobCancelledError",
    "JobStageError",
]
