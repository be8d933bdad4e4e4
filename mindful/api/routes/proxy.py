import logging
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...core.config import settings
from ...llm.streaming import extract_parts
from ..deps import get_http_client
from ..schemas import ProxyGenerateIn, ProxyGenerateOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gemini", tags=["proxy"])

@router.post("/generate", response_model=ProxyGenerateOut)
async def generate(payload: ProxyGenerateIn, client: httpx.AsyncClient = Depends(get_http_client)):
    api_key = settings.GEMINI_API_KEY
    if not api_key:
        logger.error("proxy called without GEMINI_API_KEY configured")
        return JSONResponse({"error": "Missing GEMINI_API_KEY on server"}, status_code=500)

    model = payload.model or settings.GEMINI_MODEL
    if not payload.contents:
        return JSONResponse({"error": "Invalid request: contents[] is required"}, status_code=400)

    url = f"{settings.GEMINI_BASE_URL.rstrip('/')}/models/{quote(model, safe='')}:generateContent"
    body = {"contents": payload.contents}
    if payload.generationConfig is not None:
        body["generationConfig"] = payload.generationConfig
    if payload.safetySettings is not None:
        body["safetySettings"] = payload.safetySettings

    try:
        resp = await client.post(url, params={"key": api_key}, json=body)
    except httpx.RequestError as e:
        logger.error("proxy upstream request failed: %s", e)
        return JSONResponse({"error": "Gemini request failed: network error", "details": str(e)}, status_code=502)

    if resp.status_code >= 400:
        logger.warning("proxy upstream returned %s for model %s", resp.status_code, model)
        return JSONResponse(
            {"error": f"Gemini request failed: {resp.status_code} {resp.reason_phrase}", "details": resp.text},
            status_code=resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError:
        return JSONResponse({"error": "Server error", "message": "Upstream returned a non-JSON body"}, status_code=500)
    if not isinstance(data, dict):
        return JSONResponse({"error": "Server error", "message": "Upstream returned an unexpected body"}, status_code=500)

    return ProxyGenerateOut(text="".join(extract_parts(data)), raw=data)
