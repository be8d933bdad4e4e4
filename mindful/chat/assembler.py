from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import aclosing
from typing import List, Optional, Sequence

from ..core.config import Settings, settings
from ..llm.base import GenerationConfig, GenerationRequest, Transport
from ..llm.registry import resolve_transport
from .composer import compose
from .errors import CANCELLED_MESSAGE, classify, fallback_message
from .safety import scan
from .types import CancelToken, ChatResult, ChatTurn, ErrorKind, TokenCallback

logger = logging.getLogger(__name__)


def last_user_message(turns: Sequence[ChatTurn]) -> str:
    for turn in reversed(turns):
        if turn.role == "user":
            return turn.content
    return ""


def error_result(kind: ErrorKind) -> ChatResult:
    # emergency signalling is suppressed whenever the request errored
    return ChatResult(response=fallback_message(kind), is_emergency=False, is_error=True, error_kind=kind)


class ResponseAssembler:
    """Folds a transport's token stream into callback calls and one ChatResult."""

    def __init__(self, transport: Transport, cfg: Settings = settings):
        self._transport = transport
        self._settings = cfg

    async def run(
        self,
        turns: Sequence[ChatTurn],
        on_token: TokenCallback,
        cancel: Optional[CancelToken] = None,
    ) -> ChatResult:
        turns = list(turns)
        user_message = last_user_message(turns)
        is_emergency = scan(user_message)
        prompt = compose(user_message, turns[:-1])
        request = GenerationRequest(
            prompt=prompt,
            user_message=user_message,
            generation=GenerationConfig.from_settings(self._settings),
        )

        chunks: List[str] = []
        callback_failures = 0
        try:
            async with asyncio.timeout(self._settings.REQUEST_TIMEOUT_SECONDS):
                async with aclosing(self._transport.send(request, cancel)) as tokens:
                    async for token in tokens:
                        if cancel is not None and cancel.cancelled:
                            break
                        chunks.append(token)
                        try:
                            res = on_token(token)
                            if inspect.isawaitable(res):
                                await res
                        except Exception:
                            callback_failures += 1
                            if callback_failures == 1:
                                logger.exception("on_token callback raised; continuing the stream")
        except Exception as e:
            kind = classify(e)
            logger.error("chat request failed via %s (%s): %s", self._transport.name, kind.value, e)
            return error_result(kind)

        text = "".join(chunks)
        if cancel is not None and cancel.cancelled:
            logger.info("chat request cancelled after %d tokens", len(chunks))
            return ChatResult(response=text or CANCELLED_MESSAGE, is_emergency=is_emergency, is_error=False, is_cancelled=True)
        if not text:
            logger.warning("provider %s returned an empty response", self._transport.name)
            return error_result(ErrorKind.DEFAULT)
        if is_emergency:
            logger.info("emergency keywords detected in latest user message")
        return ChatResult(response=text, is_emergency=is_emergency, is_error=False)


async def run(
    turns: Sequence[ChatTurn],
    on_token: TokenCallback,
    cancel: Optional[CancelToken] = None,
    transport: Optional[Transport] = None,
) -> ChatResult:
    if transport is None:
        transport = resolve_transport(settings)
    return await ResponseAssembler(transport, settings).run(turns, on_token, cancel)


async def respond(turns: Sequence[ChatTurn], transport: Optional[Transport] = None) -> ChatResult:
    """Non-streaming form: same pipeline, tokens are only collected."""
    return await run(turns, lambda _token: None, transport=transport)
