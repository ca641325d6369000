from __future__ import annotations

import os
from contextlib import contextmanager
from uuid import uuid4

import redis

DEFAULT_LOCK_TTL_MS = 5_000


class SessionBusy(RuntimeError):
    """Another writer holds the session lock."""


def lock_ttl_ms() -> int:
    return int(os.environ.get("TALEFORGE_LOCK_TTL_MS", DEFAULT_LOCK_TTL_MS))


def _lock_key(session_id: str) -> str:
    return f"lock:session:{session_id}"


@contextmanager
def session_lock(*, r: redis.Redis, session_id: str, ttl_ms: int | None = None):
    """Per-session writer lock.

    Batches for one session never interleave: the second writer fails fast with
    `SessionBusy` instead of waiting. The lock carries a token so a holder whose
    TTL expired doesn't release a lock someone else has since taken.
    """

    key = _lock_key(session_id)
    token = uuid4().hex
    acquired = r.set(key, token, nx=True, px=ttl_ms or lock_ttl_ms())
    if not acquired:
        raise SessionBusy(f"Session {session_id} is busy")
    try:
        yield
    finally:
        if r.get(key) == token:
            r.delete(key)
