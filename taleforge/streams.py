from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, cast

import redis

from taleforge.core.events import event_tag
from taleforge.turn_processing.outcomes import EventApplication


@dataclass(frozen=True, slots=True)
class TurnLog:
    """Append-only audit stream of every event a session has seen."""

    session_id: str

    @property
    def key(self) -> str:
        return f"turnlog:{self.session_id}"


def publish_many(*, r: redis.Redis, entries: Sequence[tuple[str, Mapping[str, str]]]) -> list[str]:
    ids: list[str] = []
    for key, fields in entries:
        stream_id = r.xadd(key, {str(k): str(v) for k, v in fields.items()})
        ids.append(cast(str, stream_id))
    return ids


def turn_log_entries(
    *, log: TurnLog, revision: int, applications: Sequence[EventApplication]
) -> list[tuple[str, dict[str, str]]]:
    entries: list[tuple[str, dict[str, str]]] = []
    for idx, application in enumerate(applications):
        entries.append(
            (
                log.key,
                {
                    "revision": str(revision),
                    "index": str(idx),
                    "event_type": event_tag(application.event),
                    "status": application.outcome.status.value,
                    "reason": application.outcome.reason or "",
                    "event": application.event.model_dump_json(),
                },
            )
        )
    return entries


def read_turn_log(*, r: redis.Redis, log: TurnLog, count: int = 50) -> list[tuple[str, dict[str, str]]]:
    # Newest first.
    return cast(list[tuple[str, dict[str, str]]], r.xrevrange(log.key, count=count))
