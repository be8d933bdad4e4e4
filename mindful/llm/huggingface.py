from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..chat.composer import format_instruct_prompt
from ..chat.types import CancelToken
from ..core.config import Settings, settings
from ..core.errors import ConfigurationError, ProviderHTTPError, ProviderNetworkError, ProviderResponseError
from .base import BaseTransport, GenerationConfig, GenerationRequest, TransportState
from .streaming import DONE_SENTINEL, iter_events, parse_event

logger = logging.getLogger(__name__)


def build_parameters(generation: GenerationConfig) -> Dict[str, Any]:
    return {
        "max_new_tokens": generation.max_output_tokens,
        "temperature": generation.temperature,
        "top_p": generation.top_p,
        "top_k": generation.top_k,
        "repetition_penalty": generation.repetition_penalty,
        "do_sample": True,
        "return_full_text": False,
    }


def _raise_for_error(doc: Dict[str, Any]) -> None:
    if doc.get("error"):
        raise ProviderResponseError(f"Text generation server error: {doc['error']}")


class HuggingFaceTransport(BaseTransport):
    """Text-generation-inference token stream (``{"token": {"text": ...}}`` events)."""

    name = "huggingface"

    def __init__(self, cfg: Settings = settings, client: Optional[httpx.AsyncClient] = None):
        super().__init__(cfg, client)
        if not cfg.HF_API_KEY:
            raise ConfigurationError("Hugging Face API key is not configured (HF_API_KEY)")

    @property
    def url(self) -> str:
        return f"{self._settings.HF_BASE_URL.rstrip('/')}/models/{self._settings.HF_MODEL}"

    async def _send(self, request: GenerationRequest, cancel: Optional[CancelToken]) -> AsyncIterator[str]:
        payload = {
            "inputs": format_instruct_prompt(request.prompt, request.user_message),
            "parameters": build_parameters(request.generation),
            "stream": True,
        }
        headers = {
            "Authorization": f"Bearer {self._settings.HF_API_KEY}",
            "Accept": "text/event-stream",
        }
        try:
            async with self._open_client() as client:
                async with client.stream("POST", self.url, json=payload, headers=headers) as resp:
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        raise ProviderHTTPError(resp.status_code, body.decode("utf-8", errors="replace"))

                    if "text/event-stream" not in resp.headers.get("content-type", ""):
                        self._transition(TransportState.BUFFERED)
                        text = self._generated_text(await resp.aread())
                        if text:
                            yield text
                        return

                    self._transition(TransportState.STREAMING)
                    finished = False
                    async for data in iter_events(resp.aiter_bytes()):
                        if cancel is not None and cancel.cancelled:
                            break
                        if finished or data.strip() == DONE_SENTINEL:
                            finished = True
                            continue
                        doc = parse_event(data)
                        if not isinstance(doc, dict):
                            continue
                        _raise_for_error(doc)
                        token = doc.get("token") or {}
                        if token.get("special"):
                            continue
                        text = token.get("text")
                        if text:
                            yield text
        except httpx.RequestError as e:
            raise ProviderNetworkError(str(e) or type(e).__name__) from e

    @staticmethod
    def _generated_text(body: bytes) -> str:
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ProviderResponseError("Text generation server returned a body that is not JSON") from e
        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            raise ProviderResponseError(f"Unexpected text generation response type: {type(data).__name__}")
        _raise_for_error(data)
        return str(data.get("generated_text") or "")
