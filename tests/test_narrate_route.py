from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from taleforge.agents.base import AgentAction
from taleforge.core.context import RenderedContext


@dataclass
class _ScriptedAgent:
    reply: str
    name: str = "scripted"
    seen: list[RenderedContext] = field(default_factory=list)

    async def propose_action(self, *, prompt: str, ctx: RenderedContext) -> AgentAction:
        self.seen.append(ctx)
        return AgentAction(kind="narration", content=self.reply)


@dataclass
class _BrokenAgent:
    name: str = "broken"

    async def propose_action(self, *, prompt: str, ctx: RenderedContext) -> AgentAction:
        raise ConnectionError("upstream down")


def test_narrate_applies_the_response(client_and_redis, monkeypatch: pytest.MonkeyPatch) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    sid = client.post("/session").json()["session_id"]

    agent = _ScriptedAgent(
        reply='[NARRATOR] A spark leaps to your palm.\nEVENTS: [{"type": "grant_power", "id": "spark", "name": "Spark"}]'
    )
    monkeypatch.setattr("taleforge.api.routes.create_default_agent", lambda: agent)

    res = client.post(f"/session/{sid}/narrate", json={"prompt": "I reach for the light."})

    assert res.status_code == 200
    body = res.json()
    assert body["events"] == ["grant_power"]
    assert body["snapshot"]["powers"][0]["id"] == "spark"
    assert body["response_text"].startswith("[NARRATOR]")

    # The narrator sees the instructions and the current state.
    system_prompt = agent.seen[0].system_prompt
    assert "EVENTS:" in system_prompt
    assert "GAME STATE:" in system_prompt


def test_narrate_failure_is_502(client_and_redis, monkeypatch: pytest.MonkeyPatch) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    sid = client.post("/session").json()["session_id"]

    monkeypatch.setattr("taleforge.api.routes.create_default_agent", lambda: _BrokenAgent())

    res = client.post(f"/session/{sid}/narrate", json={"prompt": "hello"})

    assert res.status_code == 502
    assert "upstream down" in res.json()["detail"]


async def test_request_narration_rejects_empty_reply() -> None:
    from taleforge.narrator import NarrationError, request_narration

    with pytest.raises(NarrationError):
        await request_narration(agent=_ScriptedAgent(reply="   "), prompt="x", system_prompt="sys")
