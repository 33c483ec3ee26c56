from __future__ import annotations

from conceptmap_ai.config import Settings

from .mock import MockLLM
from .openrouter import OpenRouterLLM


def build_llm(settings: Settings):
    backend = settings.llm_backend
    if backend == "mock":
        return MockLLM()
    if backend == "openrouter":
        # The API key is checked per request, so a keyless client can still be built;
        # callers such as generate_suggestions degrade to their placeholder instead.
        return OpenRouterLLM(settings)
    raise ValueError(f"未知 CMAP_LLM_BACKEND={backend!r}，可选：openrouter|mock")
