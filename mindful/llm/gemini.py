"""Gemini transport: direct SSE streaming or via our own proxy route."""

from __future__ import annotations

import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..chat.composer import build_contents
from ..chat.types import CancelToken
from ..core.config import Settings, settings
from ..core.errors import (
    ConfigurationError,
    ProviderHTTPError,
    ProviderNetworkError,
    ProviderResponseError,
    ProviderSafetyError,
)
from .base import BaseTransport, GenerationConfig, GenerationRequest, TransportState
from .streaming import DONE_SENTINEL, SSEDecoder, extract_parts, iter_events, parse_event

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

BLOCKING_FINISH_REASONS = {"SAFETY", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}


def build_payload(contents: List[Dict[str, Any]], generation: GenerationConfig) -> Dict[str, Any]:
    return {
        "contents": contents,
        "generationConfig": {
            "temperature": generation.temperature,
            "topP": generation.top_p,
            "topK": generation.top_k,
            "maxOutputTokens": generation.max_output_tokens,
        },
        "safetySettings": [
            {"category": c, "threshold": generation.safety_threshold} for c in SAFETY_CATEGORIES
        ],
    }


def check_blocked(document: Dict[str, Any]) -> None:
    """Raise ProviderSafetyError when the provider refused on safety grounds."""
    feedback = document.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        raise ProviderSafetyError(str(feedback["blockReason"]))
    candidates = document.get("candidates") or []
    if candidates and isinstance(candidates[0], dict):
        reason = candidates[0].get("finishReason")
        if reason in BLOCKING_FINISH_REASONS:
            raise ProviderSafetyError(str(reason))


def check_error(document: Dict[str, Any]) -> None:
    err = document.get("error")
    if not err:
        return
    if isinstance(err, dict):
        status = int(err.get("code") or 500)
        raise ProviderHTTPError(status, str(err.get("message") or err.get("status") or ""))
    raise ProviderResponseError(f"Provider reported an error: {err}")


def documents_from_body(body: bytes) -> List[Dict[str, Any]]:
    """Parse a non-streamed body: one JSON document, a JSON array of
    fragments, or (when the content type lied) raw SSE lines."""
    try:
        data = json.loads(body)
    except ValueError:
        decoder = SSEDecoder()
        payloads = decoder.feed(body) + decoder.flush()
        docs = [d for d in (parse_event(p) for p in payloads if p.strip() != DONE_SENTINEL) if isinstance(d, dict)]
        if not docs:
            raise ProviderResponseError("Provider returned a body that is neither JSON nor an event stream")
        return docs
    if isinstance(data, list):
        return [d for d in data if isinstance(d, dict)]
    if isinstance(data, dict):
        return [data]
    raise ProviderResponseError(f"Unexpected provider response type: {type(data).__name__}")


class GeminiTransport(BaseTransport):
    name = "gemini"

    def __init__(self, cfg: Settings = settings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(cfg, client)
        if not cfg.USE_PROXY and not cfg.GEMINI_API_KEY:
            raise ConfigurationError("Gemini API key is not configured (GEMINI_API_KEY)")

    @property
    def stream_url(self) -> str:
        return f"{self._settings.GEMINI_BASE_URL.rstrip('/')}/models/{self._settings.GEMINI_MODEL}:streamGenerateContent"

    @property
    def generate_url(self) -> str:
        return f"{self._settings.GEMINI_BASE_URL.rstrip('/')}/models/{self._settings.GEMINI_MODEL}:generateContent"

    async def _send(self, request: GenerationRequest, cancel: Optional[CancelToken]) -> AsyncIterator[str]:
        payload = build_payload(build_contents(request.prompt, request.user_message), request.generation)
        if self._settings.USE_PROXY:
            gen = self._send_via_proxy(payload)
        else:
            gen = self._send_direct(payload, cancel)
        async with aclosing(gen) as tokens:
            async for token in tokens:
                yield token

    # ---- direct ----

    async def _send_direct(self, payload: Dict[str, Any], cancel: Optional[CancelToken]) -> AsyncIterator[str]:
        key = self._settings.GEMINI_API_KEY
        downgrade = False
        try:
            async with self._open_client() as client:
                async with client.stream(
                    "POST",
                    self.stream_url,
                    params={"alt": "sse", "key": key},
                    json=payload,
                    headers={"Accept": "text/event-stream", "Content-Type": "application/json"},
                ) as resp:
                    if resp.status_code == 404:
                        await resp.aread()
                        downgrade = True
                    elif resp.status_code >= 400:
                        body = await resp.aread()
                        raise ProviderHTTPError(resp.status_code, body.decode("utf-8", errors="replace"))
                    else:
                        async for token in self._consume(resp, cancel):
                            yield token

                if downgrade:
                    logger.warning(
                        "streaming endpoint returned 404 for model %s, retrying on generateContent",
                        self._settings.GEMINI_MODEL,
                    )
                    async for token in self._send_buffered(client, payload):
                        yield token
        except httpx.RequestError as e:
            raise ProviderNetworkError(str(e) or type(e).__name__) from e

    async def _consume(self, resp: httpx.Response, cancel: Optional[CancelToken]) -> AsyncIterator[str]:
        content_type = resp.headers.get("content-type", "")
        if "text/event-stream" not in content_type:
            self._transition(TransportState.BUFFERED)
            text = self._buffered_text(await resp.aread())
            if text:
                yield text
            return

        self._transition(TransportState.STREAMING)
        finished = False
        async for data in iter_events(resp.aiter_bytes()):
            if cancel is not None and cancel.cancelled:
                break
            if finished:
                # past the sentinel: keep draining so the connection closes cleanly
                continue
            if data.strip() == DONE_SENTINEL:
                finished = True
                continue
            doc = parse_event(data)
            if not isinstance(doc, dict):
                continue
            check_error(doc)
            check_blocked(doc)
            for text in extract_parts(doc):
                yield text

    async def _send_buffered(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> AsyncIterator[str]:
        resp = await client.post(
            self.generate_url,
            params={"key": self._settings.GEMINI_API_KEY},
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        if resp.status_code >= 400:
            raise ProviderHTTPError(resp.status_code, resp.text)
        self._transition(TransportState.BUFFERED)
        text = self._buffered_text(resp.content)
        if text:
            yield text

    @staticmethod
    def _buffered_text(body: bytes) -> str:
        parts: List[str] = []
        for doc in documents_from_body(body):
            check_error(doc)
            check_blocked(doc)
            parts.extend(extract_parts(doc))
        return "".join(parts)

    # ---- proxy ----

    async def _send_via_proxy(self, payload: Dict[str, Any]) -> AsyncIterator[str]:
        body = {**payload, "model": self._settings.GEMINI_MODEL}
        try:
            async with self._open_client() as client:
                resp = await client.post(self._settings.PROXY_URL, json=body)
        except httpx.RequestError as e:
            raise ProviderNetworkError(str(e) or type(e).__name__) from e

        if resp.status_code >= 400:
            try:
                data = resp.json()
                detail = f"{data.get('error', '')} {data.get('details') or ''}".strip()
            except ValueError:
                detail = resp.text
            raise ProviderHTTPError(resp.status_code, detail)

        self._transition(TransportState.BUFFERED)
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderResponseError("Proxy returned a body that is not JSON") from e
        text = data.get("text")
        if not text and isinstance(data.get("raw"), dict):
            check_blocked(data["raw"])
            text = "".join(extract_parts(data["raw"]))
        if text:
            yield text
