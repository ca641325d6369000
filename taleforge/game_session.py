from __future__ import annotations

import threading
from collections import deque
from collections.abc import Sequence
from uuid import uuid4

from taleforge.core.events import Event
from taleforge.core.state import StateStore, new_state_store
from taleforge.turn_processing.apply import apply_batch
from taleforge.turn_processing.outcomes import EventApplication, EventOutcome
from taleforge.turn_processing.projection import GameStateSnapshot, project_snapshot
from taleforge.turn_processing.turns import TurnResult, process_response, process_turn

# Most recent event applications kept per session; older ones drop off.
HISTORY_LIMIT = 1_000


class GameSession:
    """In-process owner of one state store.

    Single writer: every batch and every snapshot takes the same lock, so a
    reader on another thread sees the store either before or after a batch,
    never halfway through. Sessions are independent objects; nothing here is
    process-global. `history` keeps only the last `history_limit` applications;
    the Redis turn log is the durable record.
    """

    def __init__(
        self,
        *,
        store: StateStore | None = None,
        session_id: str | None = None,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.session_id = session_id or str(uuid4())
        self._store = store if store is not None else new_state_store()
        self._lock = threading.Lock()
        self.history: deque[EventApplication] = deque(maxlen=history_limit)

    def apply_batch(self, events: Sequence[Event]) -> list[EventOutcome]:
        with self._lock:
            outcomes = apply_batch(self._store, events)
            self.history.extend(EventApplication(event=e, outcome=o) for e, o in zip(events, outcomes, strict=True))
            return outcomes

    def process_turn(self, *, narration: str, events_text: str | bytes) -> TurnResult:
        with self._lock:
            result = process_turn(store=self._store, narration=narration, events_text=events_text)
            self.history.extend(result.applications)
            return result

    def process_response(self, text: str) -> TurnResult:
        with self._lock:
            result = process_response(store=self._store, text=text)
            self.history.extend(result.applications)
            return result

    def snapshot(self) -> GameStateSnapshot:
        with self._lock:
            return project_snapshot(self._store)

    def dump_json(self) -> str:
        with self._lock:
            return self._store.model_dump_json()

    @classmethod
    def from_json(cls, raw: str | bytes, *, session_id: str | None = None) -> "GameSession":
        return cls(store=StateStore.model_validate_json(raw), session_id=session_id)
