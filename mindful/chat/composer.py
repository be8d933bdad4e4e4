from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .prompts import PERSONA, SAFETY_CONCERN, EVERYDAY_GUIDANCE, BOUNDARY_GUIDANCE, HISTORY_HEADER, HISTORY_REMINDER
from .safety import scan
from .types import ChatTurn

HISTORY_WINDOW = 6

ROLE_LABELS = {"user": "User", "assistant": "You", "system": "System"}


def compose(user_message: str, history: Sequence[ChatTurn] = ()) -> str:
    """Build the single system/context prompt sent ahead of the user's message."""
    prompt_parts = [PERSONA]
    if scan(user_message):
        prompt_parts.append(SAFETY_CONCERN)
    prompt_parts.append(EVERYDAY_GUIDANCE)
    prompt_parts.append(BOUNDARY_GUIDANCE)

    if history:
        recent = list(history)[-HISTORY_WINDOW:]
        lines = [HISTORY_HEADER]
        for turn in recent:
            lines.append(f"{ROLE_LABELS.get(turn.role, turn.role.title())}: {turn.content}")
        prompt_parts.append("\n".join(lines))
        prompt_parts.append(HISTORY_REMINDER)

    return "\n\n".join(prompt_parts)


def build_contents(prompt: str, user_message: str) -> List[Dict[str, Any]]:
    # Gemini has no system role on v1; the context prompt rides in the user turn
    return [
        {"role": "user", "parts": [{"text": f"{prompt}\n\nUser: {user_message}"}]},
    ]


def format_instruct_prompt(prompt: str, user_message: str) -> str:
    return f"<s>[INST] {prompt}\n\nUser: {user_message} [/INST]"
