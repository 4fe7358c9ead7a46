from __future__ import annotations

import os
import tempfile

# config creates its database folders on import; keep them out of the repo.
os.environ.setdefault("BRURIAH_DATABASE_DIR", tempfile.mkdtemp(prefix="bruriah-test-"))

from typing import Optional

import pytest
import requests
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessageChunk

from bruriah.main import app, get_admin_api_key, get_chat_model_factory, get_chat_store
from bruriah.services.chat_store import ChatStore


class FakeChatModel:
    """Streams fixed fragments; optionally raises after `fail_after` of them."""

    def __init__(self, chunks: list[str], *, fail_after: Optional[int] = None, exc: Optional[Exception] = None):
        self.chunks = chunks
        self.fail_after = fail_after
        self.exc = exc or RuntimeError("provider connection reset")
        self.calls: list[list] = []

    async def astream(self, messages):
        self.calls.append(list(messages))
        for idx, chunk in enumerate(self.chunks):
            if self.fail_after is not None and idx >= self.fail_after:
                raise self.exc
            yield AIMessageChunk(content=chunk)
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise self.exc


class FakeModelFactory:
    def __init__(self, model: FakeChatModel):
        self.model = model
        self.api_keys: list[str] = []

    def __call__(self, api_key: str) -> FakeChatModel:
        self.api_keys.append(api_key)
        return self.model


class FakeResponse:
    def __init__(
        self,
        chunks: list[bytes],
        *,
        status_code: int = 200,
        reason: str = "OK",
        fail_after: Optional[int] = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self._chunks = chunks
        self._fail_after = fail_after
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size=None):
        for idx, chunk in enumerate(self._chunks):
            if self._fail_after is not None and idx >= self._fail_after:
                raise requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead")
            yield chunk
        if self._fail_after is not None and self._fail_after >= len(self._chunks):
            raise requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead")

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.closed = True
        return False


class FakeSession:
    def __init__(self, response: Optional[FakeResponse] = None, exc: Optional[Exception] = None) -> None:
        self.response = response
        self.exc = exc
        self.requests: list[dict] = []

    def post(self, url, json=None, headers=None, stream=False):
        self.requests.append({"url": url, "json": json, "headers": headers, "stream": stream})
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture
def store(tmp_path) -> ChatStore:
    return ChatStore(tmp_path)


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_model(client):
    """Install a FakeChatModel behind the relay and return its factory."""

    def _install(model: FakeChatModel) -> FakeModelFactory:
        factory = FakeModelFactory(model)
        app.dependency_overrides[get_chat_model_factory] = lambda: factory
        return factory

    return _install


@pytest.fixture
def admin_client(client, store):
    app.dependency_overrides[get_chat_store] = lambda: store
    app.dependency_overrides[get_admin_api_key] = lambda: "admin-secret"
    return client
