"""
Runtime settings for the symptom checker.

Every field can be overridden with an environment variable; see
``Settings.from_env``. ``get_settings()`` caches one instance per process.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    # --- LLM provider ---
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_timeout: float = 30.0
    use_mock_llm: bool = False
    raw_log_path: str = "logs/llm_raw_logs.txt"

    # --- Backend / UI ---
    api_base_url: str = "http://127.0.0.1:5000"
    api_timeout: float = 60.0

    # --- Voice ---
    voice_language: str = "en-US"

    log_level: str = "INFO"

    @property
    def provider(self) -> str:
        return "mock" if self.use_mock_llm else "openai"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            openai_api_key=env.get("OPENAI_API_KEY", defaults.openai_api_key),
            openai_model=env.get("OPENAI_MODEL", defaults.openai_model),
            openai_timeout=float(env.get("OPENAI_TIMEOUT", defaults.openai_timeout)),
            use_mock_llm=env.get("MOCK_LLM", "").strip().lower() in _TRUTHY,
            raw_log_path=env.get("LLM_RAW_LOG", defaults.raw_log_path),
            api_base_url=env.get("SYMPTOM_CHECKER_API_URL", defaults.api_base_url).rstrip("/"),
            api_timeout=float(env.get("API_REQUEST_TIMEOUT", defaults.api_timeout)),
            voice_language=env.get("VOICE_LANGUAGE", defaults.voice_language),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or get_settings().log_level,
        format=LOG_FORMAT,
    )
