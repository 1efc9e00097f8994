import os

import pytest

import main as bootstrap
from toonana import config_manager as cfg
from toonana.webapi import __main__ as server


def test_cli_forwards_options_to_uvicorn(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv(cfg.DATA_DIR_ENV, "unset-after-test")
    calls = []
    monkeypatch.setattr(server.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    server.main(["--port", "9000", "--data-dir", str(tmp_path), "--log-level", "debug"])

    app, kwargs = calls[0]
    assert app == "toonana.webapi.application:create_app"
    assert kwargs == {"host": "127.0.0.1", "port": 9000, "log_level": "debug", "factory": True}
    assert os.environ[cfg.DATA_DIR_ENV] == str(tmp_path)


def test_bootstrap_script_delegates_to_server(monkeypatch: pytest.MonkeyPatch) -> None:
    received = []
    monkeypatch.setattr(bootstrap, "serve", received.append)

    assert bootstrap.main(["--port", "1"]) == 0
    assert received == [["--port", "1"]]
