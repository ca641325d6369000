from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    Makes OPENAI_BASE_URL / OPENAI_MODEL available to the env-gated narrator
    test without exporting them by hand. In CI the file is ignored unless
    TALEFORGE_LOAD_DOTENV_FOR_TESTS=1, so integration tests stay skipped.
    """

    if os.environ.get("CI") and os.environ.get("TALEFORGE_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture()
def store():
    from taleforge.core.state import new_state_store

    return new_state_store(player_name="Aria")


@pytest.fixture()
def fake_redis():
    import fakeredis

    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def client_and_redis(fake_redis):
    """FastAPI TestClient wired to a fakeredis instance."""

    from collections.abc import Generator

    import fakeredis
    from fastapi.testclient import TestClient

    from taleforge.api.deps import get_redis
    from taleforge.main import app

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield fake_redis

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, fake_redis
    app.dependency_overrides.clear()
