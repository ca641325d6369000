from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from taleforge.core.segmenter import SpeakerLine
from taleforge.turn_processing.outcomes import EventOutcome
from taleforge.turn_processing.projection import GameStateSnapshot


class SessionCreateRequest(BaseModel):
    player_name: str = Field(default="Player", min_length=1)


class SessionResponse(BaseModel):
    session_id: UUID
    snapshot: GameStateSnapshot


class SessionListResponse(BaseModel):
    sessions: list[UUID]


class TurnRequest(BaseModel):
    """Either a raw narrator response in `text`, or `narration` plus `events`.

    `events` may be the raw payload string or an already-parsed JSON array.
    """

    text: str | None = None
    narration: str = ""
    events: str | list[Any] | None = None

    @model_validator(mode="after")
    def _one_shape(self) -> "TurnRequest":
        if self.text is None and self.events is None:
            raise ValueError("Provide either text or events")
        if self.text is not None and self.events is not None:
            raise ValueError("Provide text or events, not both")
        return self


class NarrateRequest(BaseModel):
    prompt: str = Field(min_length=1)
    system_prompt: str | None = None


class SpeakerLineOut(BaseModel):
    speaker: str
    text: str
    name: str | None = None

    @classmethod
    def from_line(cls, line: SpeakerLine) -> "SpeakerLineOut":
        return cls(speaker=line.speaker.value, text=line.text, name=line.name)


class TurnResponse(BaseModel):
    session_id: UUID
    lines: list[SpeakerLineOut]
    events: list[str]
    outcomes: list[EventOutcome]
    decode_error: str | None = None
    snapshot: GameStateSnapshot
    response_text: str | None = None


class TurnLogEntry(BaseModel):
    id: str
    revision: int
    index: int
    event_type: str
    status: str
    reason: str
    event: dict[str, Any]


class TurnLogResponse(BaseModel):
    session_id: UUID
    entries: list[TurnLogEntry]
