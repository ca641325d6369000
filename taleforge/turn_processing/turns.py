from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from taleforge.core.decode import EventDecodeError, decode_events
from taleforge.core.events import Event
from taleforge.core.segmenter import SpeakerLine, segment_narrative, split_response
from taleforge.core.state import StateStore
from taleforge.turn_processing.apply import apply_batch
from taleforge.turn_processing.outcomes import EventApplication, EventOutcome
from taleforge.turn_processing.projection import GameStateSnapshot, project_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TurnResult:
    """Everything one narrator turn produced.

    `outcomes[i]` belongs to `events[i]`. When the event payload couldn't be
    decoded at all, `decode_error` is set and both lists are empty; the
    narration is still segmented.
    """

    lines: list[SpeakerLine]
    events: list[Event]
    outcomes: list[EventOutcome]
    snapshot: GameStateSnapshot
    decode_error: str | None = None
    applications: list[EventApplication] = field(default_factory=list)


def process_events(*, store: StateStore, events: Sequence[Event], lines: list[SpeakerLine] | None = None) -> TurnResult:
    outcomes = apply_batch(store, events)
    return TurnResult(
        lines=lines or [],
        events=list(events),
        outcomes=outcomes,
        snapshot=project_snapshot(store),
        applications=[EventApplication(event=e, outcome=o) for e, o in zip(events, outcomes, strict=True)],
    )


def process_turn(*, store: StateStore, narration: str, events_text: str | bytes) -> TurnResult:
    """Segment the narration, decode the events, apply them, project the result."""

    lines = segment_narrative(narration)

    try:
        events = decode_events(events_text)
    except EventDecodeError as e:
        logger.warning("turn events rejected as a whole: %s", e)
        return TurnResult(
            lines=lines,
            events=[],
            outcomes=[],
            snapshot=project_snapshot(store),
            decode_error=str(e),
        )

    return process_events(store=store, events=events, lines=lines)


def process_response(*, store: StateStore, text: str) -> TurnResult:
    """Like `process_turn`, for a raw narrator response with an `EVENTS:` section."""

    narration, events_text = split_response(text)
    return process_turn(store=store, narration=narration, events_text=events_text)
