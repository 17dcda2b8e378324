from __future__ import annotations

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


load_dotenv()

DEFAULT_PORT = 3000


def _env_port(raw: Optional[str]) -> int:
    try:
        return int(raw) if raw else DEFAULT_PORT
    except ValueError:
        return DEFAULT_PORT


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. The OpenAI SDK reads
    OPENAI_API_KEY on its own; we only keep it to report whether it is set.
    """

    def __init__(self) -> None:
        self.openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
        self.openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.title_model: str = os.getenv("TITLE_MODEL") or self.openai_model
        self.conversations_file: str = os.getenv("CONVERSATIONS_FILE", "./conversations.json")
        self.store_backend: str = os.getenv("STORE_BACKEND", "file").lower()
        self.mock_mode: bool = os.getenv("MOCK_MODE", "0") == "1"
        self.metrics_path: str = os.getenv("METRICS_PATH", "results/metrics.jsonl")
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = _env_port(os.getenv("PORT"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
