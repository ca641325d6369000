from __future__ import annotations

import threading

from taleforge.core import events as ev
from taleforge.game_session import GameSession


def test_sessions_are_independent() -> None:
    a = GameSession()
    b = GameSession()

    a.apply_batch([ev.SetFlag(flag="only_a")])

    assert a.session_id != b.session_id
    assert a.snapshot().flags == ("only_a",)
    assert b.snapshot().flags == ()


def test_snapshot_never_sees_half_a_batch() -> None:
    session = GameSession()
    seen: list[int] = []
    stop = threading.Event()

    def reader() -> None:
        while not stop.is_set():
            seen.append(len(session.snapshot().flags))

    t = threading.Thread(target=reader)
    t.start()
    try:
        for i in range(10):
            session.apply_batch([ev.SetFlag(flag=f"b{i}-{j}") for j in range(20)])
    finally:
        stop.set()
        t.join()

    assert all(n % 20 == 0 for n in seen)
    assert len(session.snapshot().flags) == 200


def test_history_and_json_round_trip() -> None:
    session = GameSession(session_id="s1")
    session.process_response('[NARRATOR] Hi.\nEVENTS: [{"type": "add_exp", "amount": 10}, {"type": "nope"}]')

    assert [a.outcome.status.value for a in session.history] == ["applied", "deferred"]

    restored = GameSession.from_json(session.dump_json(), session_id="s1")
    assert restored.snapshot() == session.snapshot()


def test_history_keeps_only_the_latest_applications() -> None:
    session = GameSession(history_limit=3)

    session.apply_batch([ev.SetFlag(flag=f"f{i}") for i in range(5)])

    assert len(session.history) == 3
    assert [a.event.flag for a in session.history] == ["f2", "f3", "f4"]  # type: ignore[union-attr]
    assert len(session.snapshot().flags) == 5
