from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    """Wire body of one chat-completions POST. Built per call, never retained."""

    model: str = Field(min_length=1)
    messages: list[Message]
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    stream: bool = False


class ResponseMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str | None = "assistant"
    # null when the model answered with tool calls only
    content: str | None = None


class Choice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: ResponseMessage | None = None
    finish_reason: str | None = None
    index: int | None = None


class ChatCompletionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # Only the first choice matters; the envelope may carry nulls.
    id: str | None = None
    model: str | None = None
    created: int | None = None
    choices: list[Choice] | None = None

    def first_content(self) -> str:
        if not self.choices or self.choices[0].message is None:
            return ""
        return self.choices[0].message.content or ""
