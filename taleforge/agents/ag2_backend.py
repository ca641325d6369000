from __future__ import annotations

from dataclasses import dataclass

from autogen import ConversableAgent

from taleforge.agents.autogen_config import llm_config_from_env
from taleforge.agents.base import AgentAction
from taleforge.core.context import RenderedContext


def _extract_last_content(messages: object) -> str:
    """Extract the last non-empty message content from AG2 chat history."""

    if not isinstance(messages, list):
        return ""

    for msg in reversed(messages):
        if isinstance(msg, dict):
            content = msg.get("content")
            if isinstance(content, str) and content.strip():
                return content.strip()
    return ""


@dataclass(slots=True)
class Ag2ChatAgent:
    """Narrator backed by an AG2 (`autogen`) ConversableAgent.

    One prompt in, one reply out (`max_turns=1`). The system prompt comes from
    the RenderedContext; transport and model config come from the environment
    (see `autogen_config`).
    """

    name: str
    model: str

    async def propose_action(self, *, prompt: str, ctx: RenderedContext) -> AgentAction:
        llm_config = llm_config_from_env(default_model=self.model)

        agent = ConversableAgent(
            name=self.name,
            system_message=ctx.system_prompt,
            llm_config=llm_config,
            human_input_mode="NEVER",
        )

        result = agent.run(message=prompt, max_turns=1)
        result.process()

        text = _extract_last_content(list(result.messages))
        if not text:
            summary = result.summary
            if isinstance(summary, str):
                text = summary.strip()

        return AgentAction(kind="narration", content=text, metadata={"model": self.model})
