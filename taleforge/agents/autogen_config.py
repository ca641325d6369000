from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from autogen import LLMConfig

DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True, slots=True)
class OpenAICompatibleSettings:
    model: str
    base_url: str | None
    api_key: str | None


def settings_from_env(*, default_model: str = DEFAULT_MODEL) -> OpenAICompatibleSettings:
    return OpenAICompatibleSettings(
        model=os.environ.get("OPENAI_MODEL", default_model),
        # Any OpenAI-compatible endpoint, e.g. http://127.0.0.1:11434/v1
        base_url=os.environ.get("OPENAI_BASE_URL") or None,
        api_key=os.environ.get("OPENAI_API_KEY") or None,
    )


def llm_config_from_env(*, default_model: str = DEFAULT_MODEL) -> LLMConfig:
    s = settings_from_env(default_model=default_model)

    # Local servers usually ignore the key, but the client insists on one.
    api_key = s.api_key or ("not-needed" if s.base_url else None)

    if not api_key:
        raise RuntimeError(
            "Set OPENAI_API_KEY for a hosted endpoint, or OPENAI_BASE_URL for a local OpenAI-compatible server"
        )

    config: dict[str, Any] = {"model": s.model, "api_key": api_key}
    if s.base_url:
        config["base_url"] = s.base_url

    return LLMConfig(config_list=[config])
