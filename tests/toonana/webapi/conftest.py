"""Shared fixtures for HTTP route tests."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from toonana.context import AppContext, build_app_context
from toonana.webapi.application import create_app

from tests.helpers.fakes import FakeImageChain, FakeLLMClient


@pytest.fixture
def image_chain() -> FakeImageChain:
    return FakeImageChain()


@pytest.fixture
def app_context(data_root: Path, image_chain: FakeImageChain) -> AppContext:
    return build_app_context(
        data_root,
        llm_client_factory=lambda _settings: FakeLLMClient(),
        image_chain_factory=lambda _settings: image_chain,
    )


@pytest.fixture
def webapi_app(app_context: AppContext) -> FastAPI:
    app = create_app(app_context)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(webapi_app: FastAPI) -> TestClient:
    with TestClient(webapi_app) as test_client:
        yield test_client


@pytest.fixture
def poll() -> Callable[..., dict]:
    """Return a helper that polls ``url`` until ``predicate`` holds for the JSON body."""

    def _poll(client: TestClient, url: str, predicate, timeout: float = 5.0) -> dict:
        deadline = time.monotonic() + timeout
        payload: Optional[dict] = None
        while time.monotonic() < deadline:
            response = client.get(url)
            assert response.status_code == 200, response.text
            payload = response.json()
            if predicate(payload):
                return payload
            time.sleep(0.02)
        raise AssertionError(f"condition not met for {url}: {payload}")

    return _poll
