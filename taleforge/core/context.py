from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RenderedContext:
    """Final, merged context passed into the LLM agent."""

    system_prompt: str

    def as_messages(self) -> list[dict[str, str]]:
        return [{"role": "system", "content": self.system_prompt}]


def compose_context(*, system_prompt: str, state_text: str = "") -> RenderedContext:
    """Stack the narrator instructions and the current game state."""

    parts = [system_prompt.strip()]
    if state_text.strip():
        parts.append("GAME STATE:\n" + state_text.strip())
    return RenderedContext(system_prompt="\n\n".join(p for p in parts if p).strip())
