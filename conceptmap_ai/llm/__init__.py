from .base import ChatMessage, LLMClient
from .factory import build_llm
from .openrouter import OpenRouterLLM
from .stream import StreamDecoder, adecode_stream, decode_stream

__all__ = [
    "ChatMessage",
    "LLMClient",
    "OpenRouterLLM",
    "StreamDecoder",
    "adecode_stream",
    "build_llm",
    "decode_stream",
]
