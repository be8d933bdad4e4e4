import asyncio
import json
import logging

import httpx
import pytest

from conftest import StalledStream, gemini_chunk, mock_client, sse_body
from mindful.core.errors import (
    ConfigurationError,
    ProviderHTTPError,
    ProviderNetworkError,
    ProviderResponseError,
    ProviderSafetyError,
)
from mindful.chat.types import CancelToken
from mindful.llm.base import GenerationRequest, TransportState
from mindful.llm.gemini import GeminiTransport, build_payload


def _request():
    return GenerationRequest(prompt="PROMPT", user_message="hello")


async def collect(transport, request=None, cancel=None):
    return [t async for t in transport.send(request or _request(), cancel)]


@pytest.mark.asyncio
async def test_streams_event_parts_in_order(cfg):
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = request.url
        seen["accept"] = request.headers.get("accept")
        seen["body"] = json.loads(request.content)
        body = sse_body(gemini_chunk("Hel", "lo"), gemini_chunk(" there"), gemini_chunk("!", finish="STOP"))
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    t = GeminiTransport(cfg, mock_client(handler))
    assert await collect(t) == ["Hel", "lo", " there", "!"]
    assert t.state == TransportState.DONE
    assert seen["url"].path.endswith("/models/gemini-test:streamGenerateContent")
    assert seen["url"].params["key"] == "test-key"
    assert seen["url"].params["alt"] == "sse"
    assert seen["accept"] == "text/event-stream"
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "PROMPT\n\nUser: hello"
    assert seen["body"]["generationConfig"]["maxOutputTokens"] == 500
    assert seen["body"]["safetySettings"]


@pytest.mark.asyncio
async def test_malformed_lines_are_keepalives(cfg):
    body = sse_body(gemini_chunk("a"), extra_lines=["data: {broken json\n\n", ": ping\n\n"]) + sse_body(gemini_chunk("b"))

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    assert await collect(GeminiTransport(cfg, mock_client(handler))) == ["a", "b"]


@pytest.mark.asyncio
async def test_done_sentinel_stops_processing(cfg):
    body = sse_body(gemini_chunk("kept"), done=True) + sse_body(gemini_chunk("after sentinel"))

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    assert await collect(GeminiTransport(cfg, mock_client(handler))) == ["kept"]


@pytest.mark.asyncio
async def test_chunked_bytes_are_reassembled(cfg):
    body = sse_body(gemini_chunk("één "), gemini_chunk("twee"))

    async def chunks():
        for i in range(0, len(body), 7):
            yield body[i:i + 7]

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=chunks())

    assert "".join(await collect(GeminiTransport(cfg, mock_client(handler)))) == "één twee"


@pytest.mark.asyncio
async def test_json_body_is_buffered_as_one_token(cfg):
    def handler(request):
        return httpx.Response(200, json=gemini_chunk("one ", "whole ", "answer"))

    t = GeminiTransport(cfg, mock_client(handler))
    assert await collect(t) == ["one whole answer"]
    assert t.state == TransportState.DONE


@pytest.mark.asyncio
async def test_json_array_of_fragments_is_buffered(cfg):
    def handler(request):
        return httpx.Response(200, json=[gemini_chunk("a"), gemini_chunk("b")])

    assert await collect(GeminiTransport(cfg, mock_client(handler))) == ["ab"]


@pytest.mark.asyncio
async def test_plain_text_body_with_sse_lines_is_recovered(cfg):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=sse_body(gemini_chunk("x"), gemini_chunk("y")))

    assert await collect(GeminiTransport(cfg, mock_client(handler))) == ["xy"]


@pytest.mark.asyncio
async def test_unparseable_body_fails(cfg):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"<html>oops</html>")

    t = GeminiTransport(cfg, mock_client(handler))
    with pytest.raises(ProviderResponseError):
        await collect(t)
    assert t.state == TransportState.FAILED


@pytest.mark.asyncio
async def test_404_downgrades_to_generate_content(cfg, caplog):
    calls = []

    def handler(request: httpx.Request):
        calls.append(request.url.path)
        if request.url.path.endswith(":streamGenerateContent"):
            return httpx.Response(404, json={"error": {"code": 404, "message": "not found"}})
        return httpx.Response(200, json=gemini_chunk("full buffered reply"))

    t = GeminiTransport(cfg, mock_client(handler))
    with caplog.at_level(logging.WARNING, logger="mindful.llm.gemini"):
        tokens = await collect(t)
    assert tokens == ["full buffered reply"]
    assert [p.rsplit(":", 1)[1] for p in calls] == ["streamGenerateContent", "generateContent"]
    assert any("retrying on generateContent" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_404_on_both_endpoints_fails(cfg):
    def handler(request):
        return httpx.Response(404, text="nope")

    with pytest.raises(ProviderHTTPError) as exc:
        await collect(GeminiTransport(cfg, mock_client(handler)))
    assert exc.value.status == 404


@pytest.mark.asyncio
async def test_non_404_error_is_not_retried(cfg):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(401, json={"error": {"message": "API key not valid"}})

    with pytest.raises(ProviderHTTPError) as exc:
        await collect(GeminiTransport(cfg, mock_client(handler)))
    assert exc.value.status == 401
    assert "401" in str(exc.value)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_safety_finish_reason_raises(cfg):
    def handler(request):
        body = sse_body(gemini_chunk("partial"), {"candidates": [{"finishReason": "SAFETY"}]})
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

    got = []
    with pytest.raises(ProviderSafetyError):
        async for tok in GeminiTransport(cfg, mock_client(handler)).send(_request()):
            got.append(tok)
    assert got == ["partial"]


@pytest.mark.asyncio
async def test_prompt_block_in_buffered_body_raises(cfg):
    def handler(request):
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    with pytest.raises(ProviderSafetyError):
        await collect(GeminiTransport(cfg, mock_client(handler)))


@pytest.mark.asyncio
async def test_network_failure_is_wrapped(cfg):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    t = GeminiTransport(cfg, mock_client(handler))
    with pytest.raises(ProviderNetworkError):
        await collect(t)
    assert t.state == TransportState.FAILED


def test_missing_key_is_a_configuration_error(cfg):
    cfg.GEMINI_API_KEY = ""
    with pytest.raises(ConfigurationError):
        GeminiTransport(cfg)


@pytest.mark.asyncio
async def test_proxy_mode_posts_to_proxy_without_key(cfg):
    cfg.USE_PROXY = True
    cfg.GEMINI_API_KEY = ""
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"text": "proxied reply", "raw": gemini_chunk("proxied reply")})

    t = GeminiTransport(cfg, mock_client(handler))
    assert await collect(t) == ["proxied reply"]
    assert seen["url"] == "https://app.test/api/gemini/generate"
    assert seen["body"]["model"] == "gemini-test"
    assert set(seen["body"]) == {"contents", "generationConfig", "safetySettings", "model"}
    assert "key=" not in seen["url"]


@pytest.mark.asyncio
async def test_proxy_error_mirrors_status(cfg):
    cfg.USE_PROXY = True

    def handler(request):
        return httpx.Response(503, json={"error": "Gemini request failed: 503 Service Unavailable", "details": "overloaded"})

    with pytest.raises(ProviderHTTPError) as exc:
        await collect(GeminiTransport(cfg, mock_client(handler)))
    assert exc.value.status == 503


def test_build_payload_shape():
    from mindful.llm.base import GenerationConfig

    p = build_payload([{"role": "user", "parts": [{"text": "x"}]}], GenerationConfig(temperature=0.2, top_p=0.9, top_k=10, max_output_tokens=64))
    assert p["generationConfig"] == {"temperature": 0.2, "topP": 0.9, "topK": 10, "maxOutputTokens": 64}
    assert all(s["threshold"] == "BLOCK_MEDIUM_AND_ABOVE" for s in p["safetySettings"])


@pytest.mark.asyncio
async def test_cancel_interrupts_a_pending_read(cfg):
    body = StalledStream(sse_body(gemini_chunk("first ")))

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=body)

    t = GeminiTransport(cfg, client=mock_client(handler))
    cancel = CancelToken()
    seen = []

    async def consume():
        async for token in t.send(_request(), cancel):
            seen.append(token)
            asyncio.get_running_loop().call_later(0.05, cancel.cancel)

    await asyncio.wait_for(consume(), timeout=2)
    assert seen == ["first "]
    assert body.closed is True
    assert t.state == TransportState.DONE
