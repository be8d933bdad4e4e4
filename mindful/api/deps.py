from typing import AsyncIterator

import httpx

from ..core.config import settings
from ..llm.base import Transport
from ..llm.registry import resolve_transport

def get_transport() -> Transport:
    # never raises: broken config becomes a transport that fails inside the pipeline
    return resolve_transport(settings)

async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT_SECONDS, trust_env=False) as client:
        yield client
