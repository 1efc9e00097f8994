import os
import tempfile
from pathlib import Path

import pytest

# Keep log files out of the working tree; must happen before toonana is imported.
os.environ.setdefault("TOONANA_LOG_DIR", tempfile.mkdtemp(prefix="toonana-test-logs-"))

from toonana import config_manager as cfg  # noqa: E402

_ENV_KEYS = (
    "GEMINI_API_KEY",
    "TOONANA_GEMINI_API_KEY",
    "TOONANA_GEMINI_MODEL",
    "OLLAMA_URL",
    "TOONANA_OLLAMA_URL",
    "TOONANA_OLLAMA_MODEL",
    "NANO_BANANA_URL",
    "TOONANA_NANO_BANANA_URL",
    "NANO_BANANA_API_KEY",
    "TOONANA_NANO_BANANA_API_KEY",
    "TOONANA_JOB_TIMEOUT",
    "TOONANA_DEBUG",
    cfg.DATA_DIR_ENV,
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def propagate_logs():
    """Let ``caplog`` see records from the non-propagating package logger."""

    from toonana import logging_manager

    logger = logging_manager.get_logger()
    previous = logger.propagate
    logger.propagate = True
    try:
        yield logger
    finally:
        logger.propagate = previous
