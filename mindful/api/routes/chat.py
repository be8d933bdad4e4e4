import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...chat.assembler import error_result, respond, run
from ...chat.types import CancelToken, ChatResult, ErrorKind
from ...llm.base import Transport
from ..deps import get_transport
from ..schemas import ChatRequestIn, ChatResultOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

def sse_event(data: Dict[str, Any], event: Optional[str] = None) -> str:
    head = f"event: {event}\n" if event else ""
    return f"{head}data: {json.dumps(data, ensure_ascii=False)}\n\n"

@router.post("/message", response_model=ChatResultOut)
async def message(payload: ChatRequestIn, transport: Transport = Depends(get_transport)):
    turns = [m.to_turn() for m in payload.messages]
    result = await respond(turns, transport=transport)
    return ChatResultOut(**result.to_dict())

@router.post("/stream")
async def stream(payload: ChatRequestIn, transport: Transport = Depends(get_transport)):
    turns = [m.to_turn() for m in payload.messages]
    cancel = CancelToken()
    queue: asyncio.Queue = asyncio.Queue()

    async def on_token(token: str) -> None:
        await queue.put(token)

    async def produce() -> None:
        try:
            result = await run(turns, on_token, cancel=cancel, transport=transport)
        except Exception:
            logger.exception("chat pipeline crashed")
            result = error_result(ErrorKind.DEFAULT)
        await queue.put(result)

    async def events():
        task = asyncio.create_task(produce())
        try:
            while True:
                item = await queue.get()
                if isinstance(item, ChatResult):
                    yield sse_event(item.to_dict(), event="result")
                    break
                yield sse_event({"token": item})
        finally:
            # client went away mid-stream
            if not task.done():
                logger.info("chat stream closed by client, cancelling")
                cancel.cancel()
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    return StreamingResponse(events(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"})
