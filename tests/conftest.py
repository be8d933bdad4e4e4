import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from mindful.main import app
from mindful.core.config import Settings


def gemini_chunk(*texts, finish=None):
    cand = {"content": {"role": "model", "parts": [{"text": t} for t in texts]}}
    if finish:
        cand["finishReason"] = finish
    return {"candidates": [cand]}


def sse_body(*docs, done=False, extra_lines=()):
    out = "".join(f"data: {json.dumps(d)}\n\n" for d in docs)
    out += "".join(extra_lines)
    if done:
        out += "data: [DONE]\n\n"
    return out.encode("utf-8")


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class StalledStream(httpx.AsyncByteStream):
    """Response body that sends its first chunk and then never sends again."""

    def __init__(self, first: bytes):
        self.first = first
        self.closed = False

    async def __aiter__(self):
        yield self.first
        await asyncio.sleep(3600)
        yield b""

    async def aclose(self):
        self.closed = True


class FakeTransport:
    """Transport double yielding fixed tokens, optionally failing afterwards."""

    name = "fake"

    def __init__(self, tokens=(), error=None, delay=0.0):
        self.tokens = list(tokens)
        self.error = error
        self.delay = delay
        self.requests = []

    async def send(self, request, cancel=None):
        self.requests.append(request)
        for t in self.tokens:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield t
        if self.error is not None:
            raise self.error


@pytest.fixture()
def cfg():
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="test-key",
        GEMINI_MODEL="gemini-test",
        GEMINI_BASE_URL="https://gemini.test/v1beta",
        HF_API_KEY="hf-test-key",
        HF_BASE_URL="https://hf.test",
        PROXY_URL="https://app.test/api/gemini/generate",
        REQUEST_TIMEOUT_SECONDS=None,
    )


@pytest.fixture()
def client():
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()
