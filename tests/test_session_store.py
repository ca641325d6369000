from __future__ import annotations

from uuid import uuid4

import pytest

from taleforge.core import events as ev
from taleforge.lock import SessionBusy, session_lock
from taleforge.session_store import (
    SessionNotFound,
    apply_turn,
    create_session,
    delete_session,
    get_session,
    list_sessions,
    require_session,
)
from taleforge.streams import TurnLog, read_turn_log


def test_create_get_list_delete(fake_redis) -> None:  # type: ignore[no-untyped-def]
    record = create_session(r=fake_redis, player_name="Aria")

    assert get_session(r=fake_redis, session_id=record.session_id).store.player.name == "Aria"
    assert list_sessions(r=fake_redis) == [record.session_id]

    delete_session(r=fake_redis, session_id=record.session_id)

    assert get_session(r=fake_redis, session_id=record.session_id) is None
    assert list_sessions(r=fake_redis) == []
    with pytest.raises(SessionNotFound):
        delete_session(r=fake_redis, session_id=record.session_id)


def test_require_missing_session(fake_redis) -> None:  # type: ignore[no-untyped-def]
    with pytest.raises(SessionNotFound):
        require_session(r=fake_redis, session_id=uuid4())


def test_apply_turn_persists_and_logs(fake_redis) -> None:  # type: ignore[no-untyped-def]
    record = create_session(r=fake_redis)

    result = apply_turn(
        r=fake_redis,
        session_id=record.session_id,
        narration="[NARRATOR] Coins glint.",
        events_text='[{"type": "currency_change", "currency": "gold", "delta": 7}, {"type": "mystery"}]',
    )

    assert result.snapshot.revision == 1
    stored = require_session(r=fake_redis, session_id=record.session_id)
    assert stored.store.currencies == {"gold": 7}

    entries = read_turn_log(r=fake_redis, log=TurnLog(session_id=str(record.session_id)))
    assert len(entries) == 2
    # Newest first.
    assert entries[0][1]["event_type"] == "mystery"
    assert entries[0][1]["status"] == "deferred"
    assert entries[1][1]["event_type"] == "currency_change"
    assert entries[1][1]["status"] == "applied"


def test_apply_turn_with_decoded_events(fake_redis) -> None:  # type: ignore[no-untyped-def]
    record = create_session(r=fake_redis)

    apply_turn(r=fake_redis, session_id=record.session_id, events=[ev.SetFlag(flag="dawn")])

    assert require_session(r=fake_redis, session_id=record.session_id).store.flags == ["dawn"]


def test_decode_error_saves_nothing(fake_redis) -> None:  # type: ignore[no-untyped-def]
    record = create_session(r=fake_redis)

    result = apply_turn(r=fake_redis, session_id=record.session_id, events_text="{nope")

    assert result.decode_error
    assert require_session(r=fake_redis, session_id=record.session_id).store.revision == 0
    assert read_turn_log(r=fake_redis, log=TurnLog(session_id=str(record.session_id))) == []


def test_busy_session_fails_fast(fake_redis) -> None:  # type: ignore[no-untyped-def]
    record = create_session(r=fake_redis)

    with session_lock(r=fake_redis, session_id=str(record.session_id)):
        with pytest.raises(SessionBusy):
            apply_turn(r=fake_redis, session_id=record.session_id, events_text="[]")

    # Released afterwards.
    apply_turn(r=fake_redis, session_id=record.session_id, events_text="[]")
