import json
import logging

import pytest

from toonana import logging_manager as log_mgr
from toonana.observability import pipeline_stage


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("toonana.test", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_known_fields_and_extras() -> None:
    record = _record(job_id="job-7", event="job.start", attempt=2)

    payload = json.loads(log_mgr.JSONLogFormatter().format(record))

    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["job_id"] == "job-7"
    assert payload["event"] == "job.start"
    assert payload["extra"] == {"attempt": 2}


def test_formatter_lifts_provider_fields_and_skips_none() -> None:
    record = _record(
        event="images.fallback",
        provider="remote-renderer",
        next_provider="gemini-stream",
        stage=None,
    )

    payload = json.loads(log_mgr.JSONLogFormatter().format(record))

    assert payload["provider"] == "remote-renderer"
    assert payload["next_provider"] == "gemini-stream"
    assert "stage" not in payload
    assert "extra" not in payload


def test_log_context_is_injected_and_restored() -> None:
    context_filter = log_mgr.LogContextFilter()

    with log_mgr.log_context(job_id="job-1", stage="rendering"):
        record = _record()
        context_filter.filter(record)
        assert log_mgr.get_log_context() == {"job_id": "job-1", "stage": "rendering"}

    assert record.job_id == "job-1"
    assert record.stage == "rendering"
    assert log_mgr.get_log_context() == {}


def test_pipeline_stage_logs_start_and_completion(caplog, propagate_logs) -> None:
    with caplog.at_level(logging.INFO, logger="toonana"):
        with pipeline_stage("saving", {"entry_id": "e1"}):
            pass

    events = [getattr(record, "event", None) for record in caplog.records]
    assert "pipeline.stage.start" in events
    assert "pipeline.stage.complete" in events


def test_pipeline_stage_reraises_interruptions(caplog, propagate_logs) -> None:
    with caplog.at_level(logging.INFO, logger="toonana"):
        with pytest.raises(RuntimeError):
            with pipeline_stage("rendering"):
                raise RuntimeError("boom")

    interrupted = [r for r in caplog.records if getattr(r, "event", None) == "pipeline.stage.interrupted"]
    assert interrupted[0].attributes["error"] == "RuntimeError"


def test_debug_flag_lowers_level() -> None:
    logger = log_mgr.get_logger()
    previous = logger.level
    try:
        assert log_mgr.configure_logging_level(debug_enabled=True) == logging.DEBUG
        assert logger.level == logging.DEBUG
    finally:
        log_mgr.configure_logging_level(log_level=previous)
