from __future__ import annotations

import logging

from conceptmap_ai.llm import ChatMessage, LLMClient
from conceptmap_ai.prompts import SUGGEST_SYSTEM, SUGGEST_USER

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5
FALLBACK_SUGGESTIONS = ["无法生成建议，请稍后再试"]


def split_suggestions(text: str, *, limit: int = MAX_SUGGESTIONS) -> list[str]:
    lines = (line.strip() for line in text.split("\n"))
    return [line for line in lines if line][:limit]


def generate_suggestions(llm: LLMClient, node_content: str) -> list[str]:
    """
    Ask the model for up to five concepts related to a concept-map node.

    Never raises: any failure (missing key, HTTP error, network error, ...) is logged
    and replaced by a single placeholder entry the UI can show as-is.
    """
    messages = [
        ChatMessage("system", SUGGEST_SYSTEM),
        ChatMessage("user", SUGGEST_USER.format(node_content=node_content)),
    ]
    try:
        out = llm.chat(messages)
    except Exception:
        logger.exception("生成建议错误")
        return list(FALLBACK_SUGGESTIONS)
    return split_suggestions(out)
