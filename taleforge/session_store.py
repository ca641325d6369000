from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis
from pydantic import BaseModel

from taleforge.core.events import Event
from taleforge.core.segmenter import segment_narrative
from taleforge.core.state import StateStore, new_state_store
from taleforge.lock import session_lock
from taleforge.streams import TurnLog, publish_many, turn_log_entries
from taleforge.turn_processing.turns import TurnResult, process_events, process_turn

logger = logging.getLogger(__name__)

SESSIONS_SET_KEY = "taleforge:sessions"
SESSION_KEY_PREFIX = "taleforge:session:"  # + {uuid}


class SessionNotFound(ValueError):
    pass


class SessionRecord(BaseModel):
    session_id: UUID
    created_at: datetime
    last_updated_at: datetime
    store: StateStore


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _session_key(session_id: UUID) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def save_session(*, r: redis.Redis, record: SessionRecord) -> None:
    # One SET per save: a concurrent reader gets the whole old record or the whole new one.
    record.last_updated_at = _now()
    r.set(_session_key(record.session_id), record.model_dump_json())


def get_session(*, r: redis.Redis, session_id: UUID) -> SessionRecord | None:
    raw = r.get(_session_key(session_id))
    if not raw:
        return None
    return SessionRecord.model_validate_json(raw)


def require_session(*, r: redis.Redis, session_id: UUID) -> SessionRecord:
    record = get_session(r=r, session_id=session_id)
    if record is None:
        raise SessionNotFound(f"Session {session_id} not found")
    return record


def create_session(*, r: redis.Redis, player_name: str = "Player") -> SessionRecord:
    now = _now()
    record = SessionRecord(
        session_id=uuid4(),
        created_at=now,
        last_updated_at=now,
        store=new_state_store(player_name=player_name),
    )
    r.set(_session_key(record.session_id), record.model_dump_json())
    r.sadd(SESSIONS_SET_KEY, str(record.session_id))
    logger.info("created session %s", record.session_id)
    return record


def list_sessions(*, r: redis.Redis) -> list[UUID]:
    out: list[UUID] = []
    for sid in sorted(r.smembers(SESSIONS_SET_KEY)):
        try:
            out.append(UUID(sid))
        except ValueError:
            continue
    return out


def delete_session(*, r: redis.Redis, session_id: UUID) -> None:
    removed = r.delete(_session_key(session_id))
    r.srem(SESSIONS_SET_KEY, str(session_id))
    r.delete(TurnLog(session_id=str(session_id)).key)
    if not removed:
        raise SessionNotFound(f"Session {session_id} not found")


def apply_turn(
    *,
    r: redis.Redis,
    session_id: UUID,
    narration: str = "",
    events_text: str | bytes | None = None,
    events: Sequence[Event] | None = None,
) -> TurnResult:
    """Run one narrator turn against a persisted session.

    Either `events_text` (raw payload, decoded here) or already-decoded `events`
    is given. The whole load-apply-save runs under the session lock; raises
    `SessionBusy` if another writer holds it.
    """

    with session_lock(r=r, session_id=str(session_id)):
        record = require_session(r=r, session_id=session_id)

        if events is not None:
            result = process_events(store=record.store, events=events, lines=segment_narrative(narration))
        else:
            result = process_turn(store=record.store, narration=narration, events_text=events_text or "")

        if result.decode_error is None:
            save_session(r=r, record=record)
            log = TurnLog(session_id=str(session_id))
            publish_many(
                r=r,
                entries=turn_log_entries(log=log, revision=record.store.revision, applications=result.applications),
            )

    return result
