from __future__ import annotations

import re

from .base import ChatMessage
from .stream import DeltaCallback


class MockLLM:
    """Deterministic offline backend: exercises callers without an OpenRouter key."""

    def __init__(self, *, piece_size: int = 4) -> None:
        self.piece_size = piece_size

    def chat(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        # Prompts quote the node text; echo that, else the start of the raw message.
        quoted = re.search(r'"([^"\n]+)"', last_user)
        topic = quoted.group(1) if quoted else " ".join(last_user.split())
        topic = topic.strip()[:20] or "概念"
        return "\n".join(f"【MOCK】{topic} 相关概念 {i}" for i in range(1, 6))

    def chat_stream(
        self,
        messages: list[ChatMessage],
        on_delta: DeltaCallback,
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        text = self.chat(messages, model=model, temperature=temperature)
        for i in range(0, len(text), self.piece_size):
            on_delta(text[i : i + self.piece_size])
        return text
