"""Incremental event-stream decoding shared by the transports."""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [p for p in map(_data_payload, lines) if p is not None]

    def flush(self) -> List[str]:
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        payload = _data_payload(line)
        return [payload] if payload is not None else []


def _data_payload(line: str) -> Optional[str]:
    line = line.rstrip("\r")
    if not line.startswith("data:"):
        # event:, id:, retry:, ":" comments and blank separators
        return None
    payload = line[5:]
    if payload.startswith(" "):
        payload = payload[1:]
    return payload or None


async def iter_events(chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    decoder = SSEDecoder()
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
    for payload in decoder.flush():
        yield payload


def parse_event(payload: str) -> Optional[Any]:
    try:
        return json.loads(payload)
    except (json.JSONDecodeError, ValueError):
        logger.debug("skipping non-JSON stream line: %r", payload[:80])
        return None


def extract_parts(document: Dict[str, Any]) -> List[str]:
    """Text segments from ``candidates[0].content.parts[*].text``."""
    candidates = document.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return []
    content = candidates[0].get("content") or {}
    out = []
    for part in content.get("parts", []) or []:
        text = part.get("text") if isinstance(part, dict) else None
        if text:
            out.append(text)
    return out
