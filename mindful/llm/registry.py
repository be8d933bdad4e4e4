import logging
from typing import Callable, Dict, Optional

import httpx

from ..core.config import Settings, settings
from ..core.errors import ConfigurationError
from .base import BaseTransport
from .gemini import GeminiTransport
from .huggingface import HuggingFaceTransport

logger = logging.getLogger(__name__)

REGISTRY: Dict[str, Callable[[Settings, Optional[httpx.AsyncClient]], BaseTransport]] = {
    "gemini": lambda cfg, client: GeminiTransport(cfg, client),
    "huggingface": lambda cfg, client: HuggingFaceTransport(cfg, client),
}


def create_transport(cfg: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> BaseTransport:
    """Instantiate the transport selected by CHAT_PROVIDER."""
    cfg = cfg if cfg is not None else settings
    key = (cfg.CHAT_PROVIDER or "").lower()
    try:
        factory = REGISTRY[key]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown chat provider {cfg.CHAT_PROVIDER!r}") from exc
    return factory(cfg, client)


class UnavailableTransport(BaseTransport):
    """Stands in when configuration is broken so the failure reaches the
    assembler like any other provider error."""

    name = "unavailable"

    def __init__(self, cfg: Settings, error: Exception):
        super().__init__(cfg)
        self.error = error

    async def _send(self, request, cancel):
        raise self.error
        yield  # pragma: no cover


def resolve_transport(cfg: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> BaseTransport:
    cfg = cfg if cfg is not None else settings
    try:
        return create_transport(cfg, client)
    except ConfigurationError as e:
        logger.error("chat transport unavailable: %s", e)
        return UnavailableTransport(cfg, e)
