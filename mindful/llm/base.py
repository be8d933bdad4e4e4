"""Provider transport contract: async generators of text fragments."""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Optional, Protocol

import httpx

from ..chat.types import CancelToken
from ..core.config import Settings

logger = logging.getLogger(__name__)


class TransportState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    BUFFERED = "buffered"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (TransportState.DONE, TransportState.FAILED)


@dataclass
class GenerationConfig:
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 500
    repetition_penalty: float = 1.15
    safety_threshold: str = "BLOCK_MEDIUM_AND_ABOVE"

    @classmethod
    def from_settings(cls, cfg: Settings) -> "GenerationConfig":
        return cls(
            temperature=cfg.TEMPERATURE,
            top_p=cfg.TOP_P,
            top_k=cfg.TOP_K,
            max_output_tokens=cfg.MAX_OUTPUT_TOKENS,
            repetition_penalty=cfg.REPETITION_PENALTY,
            safety_threshold=cfg.SAFETY_THRESHOLD,
        )


@dataclass
class GenerationRequest:
    prompt: str
    user_message: str
    generation: GenerationConfig = field(default_factory=GenerationConfig)


class Transport(Protocol):
    name: str
    state: TransportState

    def send(self, request: GenerationRequest, cancel: Optional[CancelToken] = None) -> AsyncIterator[str]:
        ...


class BaseTransport:
    """Shared plumbing: state bookkeeping and the httpx client."""

    name = "base"

    def __init__(self, cfg: Settings, client: Optional[httpx.AsyncClient] = None):
        self._settings = cfg
        self._client = client
        self.state = TransportState.IDLE

    def _transition(self, new_state: TransportState) -> None:
        if self.state in TERMINAL_STATES and new_state not in (TransportState.IDLE, TransportState.REQUESTING):
            return
        logger.debug("transport %s: %s -> %s", self.name, self.state.value, new_state.value)
        self.state = new_state

    def _open_client(self):
        # Injected clients (tests, shared pools) are owned by the caller and never closed here
        if self._client is not None:
            return _Borrowed(self._client)
        return httpx.AsyncClient(timeout=self._settings.REQUEST_TIMEOUT_SECONDS, trust_env=False)

    async def send(self, request: GenerationRequest, cancel: Optional[CancelToken] = None) -> AsyncIterator[str]:
        self._transition(TransportState.IDLE)
        self._transition(TransportState.REQUESTING)
        try:
            async with aclosing(self._send(request, cancel)) as tokens:
                while not (cancel is not None and cancel.cancelled):
                    if cancel is None:
                        token = await _next_token(tokens)
                    else:
                        token = await _next_token_or_cancel(tokens, cancel)
                    if token is _CANCELLED:
                        logger.info("transport %s: read interrupted by cancel", self.name)
                        break
                    if token is _EXHAUSTED:
                        break
                    yield token
        except GeneratorExit:
            # consumer stopped early (cancel or callback short-circuit)
            self._transition(TransportState.DONE)
            raise
        except (Exception, asyncio.CancelledError):
            self._transition(TransportState.FAILED)
            raise
        self._transition(TransportState.DONE)

    def _send(self, request: GenerationRequest, cancel: Optional[CancelToken]) -> AsyncIterator[str]:
        raise NotImplementedError


class _Borrowed:
    """Async context wrapper that hands out a client without closing it."""

    def __init__(self, client: httpx.AsyncClient):
        self._c = client

    async def __aenter__(self) -> httpx.AsyncClient:
        return self._c

    async def __aexit__(self, *exc) -> bool:
        return False


_EXHAUSTED = object()
_CANCELLED = object()


async def _next_token(tokens: AsyncIterator[str]):
    try:
        return await tokens.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


async def _next_token_or_cancel(tokens: AsyncIterator[str], cancel: CancelToken):
    # a stalled read must not outlive the cancel signal
    read = asyncio.ensure_future(_next_token(tokens))
    stop = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait((read, stop), return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop.cancel()
        if not read.done():
            read.cancel()
            await asyncio.gather(read, return_exceptions=True)
    if read.cancelled():
        return _CANCELLED
    return read.result()
