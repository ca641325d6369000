from __future__ import annotations

from typing import cast

from taleforge.agents.ag2_backend import Ag2ChatAgent
from taleforge.agents.autogen_config import settings_from_env
from taleforge.agents.base import Agent


def create_default_agent(*, name: str = "narrator") -> Agent:
    """Create the default LLM-backed narrator (AG2, configured from env)."""

    return cast(Agent, Ag2ChatAgent(name=name, model=settings_from_env().model))
