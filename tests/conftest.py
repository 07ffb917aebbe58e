# tests/conftest.py
import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

# Settings are read once at import time: point the application engine at a
# throwaway database before anything from `app` is imported.
_APP_DB_DIR = tempfile.mkdtemp(prefix="class-schedule-sync-")
os.environ.setdefault("DB_URL", f"sqlite+aiosqlite:///{Path(_APP_DB_DIR) / 'app.db'}")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DB_NULL_POOL", "true")
os.environ.setdefault("ZOOM_SIMULATION_MODE", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.api.dependencies.meeting_sync import get_meeting_synchronizer  # noqa: E402
from app.db.session import build_session_factory, get_db, reset_schema_sync  # noqa: E402
from app.main import create_app  # noqa: E402
from app.schemas.meeting import ProviderMeeting  # noqa: E402
from app.services.meeting_sync import MeetingSynchronizer  # noqa: E402
from app.services.zoom_client import zoom_weekday  # noqa: E402

# Monday 2024-01-01 08:00 UTC
FIXED_NOW = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)


class FakeMeetingClient:
    """
    In-memory meeting provider.

    Records every call; ``fail_topics`` maps a topic to the exception raised
    for it, ``delay`` suspends each call so concurrent syncs overlap.
    """

    def __init__(self, fail_topics=None, delay: float = 0.0):
        self.calls = []
        self.fail_topics = fail_topics or {}
        self.delay = delay

    async def create_recurring_meeting(
        self,
        host_identity,
        topic,
        first_start,
        duration_minutes,
        weekday,
    ) -> ProviderMeeting:
        self.calls.append(
            {
                "host_identity": host_identity,
                "topic": topic,
                "first_start": first_start,
                "duration_minutes": duration_minutes,
                "weekday": weekday,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if topic in self.fail_topics:
            raise self.fail_topics[topic]

        meeting_id = f"meeting-{len(self.calls)}"
        return ProviderMeeting(
            external_meeting_id=meeting_id,
            join_url=f"https://zoom.us/j/{meeting_id}",
            first_occurrence_start=first_start,
            provider_status="waiting",
            raw={"weekly_days": str(zoom_weekday(weekday))},
        )


@pytest.fixture
def db_url(tmp_path) -> str:
    """
    A fresh SQLite file database with the full schema, one per test.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'schedule.db'}"
    reset_schema_sync(url)
    return url


@pytest.fixture
def session_factory(db_url):
    return build_session_factory(db_url)


@pytest.fixture
def fake_meeting_client() -> FakeMeetingClient:
    return FakeMeetingClient()


@pytest.fixture
def client(session_factory, fake_meeting_client) -> TestClient:
    """
    TestClient bound to the per-test database and the fake meeting provider.

    Uses the application factory so every test gets fresh dependency
    overrides.
    """
    app = create_app()

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    synchronizer = MeetingSynchronizer(
        session_factory,
        fake_meeting_client,
        tz=timezone.utc,
        clock=lambda: FIXED_NOW,
    )

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_meeting_synchronizer] = lambda: synchronizer

    with TestClient(app) as test_client:
        yield test_client
