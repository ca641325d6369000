from __future__ import annotations

import logging

from taleforge.agents.base import Agent
from taleforge.core.context import compose_context
from taleforge.prompts import load_prompt
from taleforge.turn_processing.projection import GameStateSnapshot
from taleforge.turn_processing.state_text import snapshot_to_text

logger = logging.getLogger(__name__)

NARRATOR_PROMPT = "narrator_system.txt"


class NarrationError(RuntimeError):
    """The text-generation service failed or returned nothing."""


async def request_narration(
    *,
    agent: Agent,
    prompt: str,
    system_prompt: str | None = None,
    snapshot: GameStateSnapshot | None = None,
) -> str:
    """Ask the narrator for one response and return its raw text.

    No retries: any failure surfaces as `NarrationError` and the caller decides.
    """

    ctx = compose_context(
        system_prompt=system_prompt if system_prompt is not None else load_prompt(NARRATOR_PROMPT),
        state_text=snapshot_to_text(snapshot) if snapshot is not None else "",
    )

    try:
        action = await agent.propose_action(prompt=prompt, ctx=ctx)
    except Exception as e:
        logger.warning("narrator %s failed: %s", getattr(agent, "name", "?"), e)
        raise NarrationError(f"Narration request failed: {e}") from e

    if not action.content.strip():
        raise NarrationError("Narrator returned an empty response")
    return action.content
