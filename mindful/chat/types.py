from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Literal, Optional, Union

Role = Literal["user", "assistant", "system"]


@dataclass(frozen=True)
class ChatTurn:
    role: Role
    content: str


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    SERVER = "server"
    SAFETY = "safety"
    DEFAULT = "default"


@dataclass(frozen=True)
class ChatResult:
    response: str
    is_emergency: bool
    is_error: bool
    is_cancelled: bool = False
    error_kind: Optional[ErrorKind] = None

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "isEmergency": self.is_emergency,
            "isError": self.is_error,
            "isCancelled": self.is_cancelled,
            "errorKind": self.error_kind.value if self.error_kind else None,
        }


# on_token may be a plain function or a coroutine function
TokenCallback = Callable[[str], Union[None, Awaitable[None]]]


class CancelToken:
    """Cooperative cancellation for one in-flight request."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
