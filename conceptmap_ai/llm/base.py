from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .stream import DeltaCallback


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str


class LLMClient(Protocol):
    def chat(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        """Return assistant text output."""
        raise NotImplementedError

    def chat_stream(
        self,
        messages: list[ChatMessage],
        on_delta: DeltaCallback,
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        """Pass each text delta to `on_delta` as it arrives; return the full text."""
        raise NotImplementedError
