from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from conceptmap_ai.errors import ConfigurationError

DEFAULT_API_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_SITE_URL = "https://conceptmap.app"
DEFAULT_SITE_NAME = "光场思维地图"
DEFAULT_MODEL = "openai/gpt-4o"
DEFAULT_STREAM_MODEL = "google/gemini-2.0-flash-lite-001"


@dataclass(frozen=True)
class Settings:
    llm_backend: str = "openrouter"

    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    site_url: str = DEFAULT_SITE_URL
    site_name: str = DEFAULT_SITE_NAME

    model: str = DEFAULT_MODEL
    stream_model: str = DEFAULT_STREAM_MODEL
    timeout_s: float = 120.0

    log_level: str = "WARNING"
    log_dir: Path = Path("logs")

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("未配置 OpenRouter API 密钥（OPENROUTER_API_KEY）")
        return self.api_key


def load_settings() -> Settings:
    """
    Read settings once at process start.

    Only presence of the API key is validated, and lazily: `Settings.require_api_key()`
    is called by the client before each request, so a missing key never blocks startup.
    """
    # Allow users to keep secrets in a `.env` next to where they run the CLI (not committed).
    load_dotenv(find_dotenv(usecwd=True), override=False)

    def getenv(key: str, default: str | None = None) -> str | None:
        v = os.getenv(key)
        if v is None or v == "":
            return default
        return v

    llm_backend = (getenv("CMAP_LLM_BACKEND", "openrouter") or "openrouter").strip().lower()

    api_key = getenv("OPENROUTER_API_KEY", None)
    api_url = getenv("CMAP_API_URL", DEFAULT_API_URL) or DEFAULT_API_URL
    site_url = getenv("CMAP_SITE_URL", DEFAULT_SITE_URL) or DEFAULT_SITE_URL
    site_name = getenv("CMAP_SITE_NAME", DEFAULT_SITE_NAME) or DEFAULT_SITE_NAME

    model = getenv("CMAP_MODEL", DEFAULT_MODEL) or DEFAULT_MODEL
    stream_model = getenv("CMAP_STREAM_MODEL", DEFAULT_STREAM_MODEL) or DEFAULT_STREAM_MODEL
    timeout_s = float(getenv("CMAP_TIMEOUT_S", "120") or "120")

    log_level = (getenv("CMAP_LOG_LEVEL", "WARNING") or "WARNING").upper()
    log_dir = Path(getenv("CMAP_LOG_DIR", "logs") or "logs").resolve()

    return Settings(
        llm_backend=llm_backend,
        api_key=api_key,
        api_url=api_url,
        site_url=site_url,
        site_name=site_name,
        model=model,
        stream_model=stream_model,
        timeout_s=timeout_s,
        log_level=log_level,
        log_dir=log_dir,
    )
