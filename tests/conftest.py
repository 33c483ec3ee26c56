"""
Shared pytest fixtures.

HTTP never leaves the process: the client gets an httpx.MockTransport whose
handler records every request and answers with a canned response.
"""

import json

import httpx
import pytest

from conceptmap_ai.config import Settings


def sse(*frames: str) -> bytes:
    """Encode `data:` frames the way the gateway sends them."""
    return "".join(f"data: {f}\n\n" for f in frames).encode("utf-8")


def delta_frame(content) -> str:
    return json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False)


class Recorder:
    """Callable MockTransport handler that remembers the requests it served."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="sk-or-test")


@pytest.fixture
def keyless_settings() -> Settings:
    return Settings(api_key=None)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate load_settings() from the developer's shell and any local .env file."""
    monkeypatch.chdir(tmp_path)
    for key in (
        "OPENROUTER_API_KEY",
        "CMAP_LLM_BACKEND",
        "CMAP_API_URL",
        "CMAP_SITE_URL",
        "CMAP_SITE_NAME",
        "CMAP_MODEL",
        "CMAP_STREAM_MODEL",
        "CMAP_TIMEOUT_S",
        "CMAP_LOG_LEVEL",
        "CMAP_LOG_DIR",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
