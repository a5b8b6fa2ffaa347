from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv


DEFAULT_BASE_URL = "http://localhost:1234/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_FALLBACK_MODEL = "local-model"
DEFAULT_TIMEOUT_SEC = 120
# 0 or negative disables trimming.
DEFAULT_MAX_HISTORY_LENGTH = 20


@dataclass(frozen=True)
class Settings:
    base_url: str
    api_key: str | None
    model: str | None
    fallback_model: str
    timeout_sec: int
    max_history_length: int


def get_settings() -> Settings:
    load_dotenv()
    model_env = os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
    model_env = model_env.strip() if model_env else None
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    return Settings(
        base_url=os.getenv("OPENAI_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        api_key=api_key or None,
        model=model_env or None,
        fallback_model=os.getenv("OPENAI_FALLBACK_MODEL", DEFAULT_FALLBACK_MODEL),
        timeout_sec=int(os.getenv("OPENAI_TIMEOUT_SEC", str(DEFAULT_TIMEOUT_SEC))),
        max_history_length=int(os.getenv("MAX_HISTORY_LENGTH", str(DEFAULT_MAX_HISTORY_LENGTH))),
    )
