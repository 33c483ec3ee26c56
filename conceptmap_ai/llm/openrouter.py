from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from urllib.parse import quote

import httpx

from conceptmap_ai.config import Settings
from conceptmap_ai.errors import ConceptMapAIError, HTTPError, TransportError
from conceptmap_ai.schema import ChatCompletionResponse, ChatRequest

from .base import ChatMessage
from .stream import DeltaCallback, adecode_stream, decode_stream

logger = logging.getLogger(__name__)

# encodeURI-style: keep URL structure, escape everything else
_URL_SAFE = ":/?#[]@!$&'()*+,;=%~"


def header_safe(value: str, *, safe: str = "!*'()") -> str:
    """Return `value` unchanged if it is printable ASCII, else its UTF-8 percent-encoding."""
    if all(" " <= ch <= "~" for ch in value):
        return value
    return quote(value, safe=safe)


class OpenRouterLLM:
    """
    OpenRouter chat-completions client via raw HTTP.

    Exactly one POST per call. `chat` returns the first choice's content; `chat_stream`
    runs the event-stream body through `StreamDecoder` and returns the concatenated deltas.
    `achat` / `achat_stream` are the asyncio twins. No retries: every failure is raised.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.api_url = settings.api_url
        self.timeout_s = settings.timeout_s
        # httpx.MockTransport serves both the sync and the async client.
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        api_key = self.settings.require_api_key()
        return {
            "Authorization": header_safe(f"Bearer {api_key}"),
            "HTTP-Referer": header_safe(self.settings.site_url, safe=_URL_SAFE),
            "X-Title": header_safe(self.settings.site_name),
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None,
        temperature: float,
        stream: bool,
    ) -> dict:
        default_model = self.settings.stream_model if stream else self.settings.model
        request = ChatRequest(
            model=model or default_model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=temperature,
            stream=stream,
        )
        return request.model_dump()

    def chat(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        with _mapped_errors("OpenRouter API 请求错误"):
            headers = self._headers()
            payload = self._payload(messages, model=model, temperature=temperature, stream=False)
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.post(self.api_url, json=payload, headers=headers)
            _raise_for_status(r)
            return _parse_completion(r)

    def chat_stream(
        self,
        messages: list[ChatMessage],
        on_delta: DeltaCallback,
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        with _mapped_errors("OpenRouter 流式 API 请求错误"):
            headers = self._headers()
            payload = self._payload(messages, model=model, temperature=temperature, stream=True)
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                with client.stream("POST", self.api_url, json=payload, headers=headers) as r:
                    if not r.is_success:
                        r.read()
                        _raise_for_status(r)
                    body = None if r.is_stream_consumed else r.iter_bytes()
                    return decode_stream(body, on_delta)

    async def achat(
        self,
        messages: list[ChatMessage],
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        with _mapped_errors("OpenRouter API 请求错误"):
            headers = self._headers()
            payload = self._payload(messages, model=model, temperature=temperature, stream=False)
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                r = await client.post(self.api_url, json=payload, headers=headers)
            _raise_for_status(r)
            return _parse_completion(r)

    async def achat_stream(
        self,
        messages: list[ChatMessage],
        on_delta: DeltaCallback,
        *,
        model: str | None = None,
        temperature: float = 0.7,
    ) -> str:
        with _mapped_errors("OpenRouter 流式 API 请求错误"):
            headers = self._headers()
            payload = self._payload(messages, model=model, temperature=temperature, stream=True)
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                async with client.stream("POST", self.api_url, json=payload, headers=headers) as r:
                    if not r.is_success:
                        await r.aread()
                        _raise_for_status(r)
                    body = None if r.is_stream_consumed else r.aiter_bytes()
                    return await adecode_stream(body, on_delta)


@contextmanager
def _mapped_errors(what: str) -> Iterator[None]:
    # Log and re-raise; connection-level httpx failures become TransportError.
    try:
        yield
    except httpx.RequestError as exc:
        logger.warning("%s: %s", what, exc)
        raise TransportError(f"网络请求失败: {exc!s}") from exc
    except ConceptMapAIError as exc:
        logger.warning("%s: %s", what, exc)
        raise


def _raise_for_status(r: httpx.Response) -> None:
    if r.is_success:
        return
    status_line = f"{r.status_code} {r.reason_phrase}".strip()
    detail = _error_message(r) or status_line
    raise HTTPError(f"API 请求失败: {detail}", status_code=r.status_code)


def _error_message(r: httpx.Response) -> str | None:
    # OpenRouter returns: {"error": {"message": "...", "code": 401}}
    try:
        data = r.json()
    except ValueError:
        return None
    error = data.get("error") if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return None
    message = error.get("message")
    if isinstance(message, str) and message:
        return message
    return None


def _parse_completion(r: httpx.Response) -> str:
    try:
        return ChatCompletionResponse.model_validate(r.json()).first_content()
    except ValueError as exc:
        # Not JSON, or JSON that is not a completion object.
        status_line = f"{r.status_code} {r.reason_phrase}".strip()
        raise HTTPError(f"API 响应格式无效: {status_line}", status_code=r.status_code) from exc
