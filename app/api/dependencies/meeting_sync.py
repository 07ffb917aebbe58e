# app/api/dependencies/meeting_sync.py
from http import HTTPStatus
from typing import Optional

from fastapi import HTTPException

from app.core.config import get_settings
from app.core.exceptions import ConfigurationError
from app.db.session import AsyncSessionLocal
from app.services.meeting_sync import MeetingSynchronizer
from app.services.zoom_client import get_meeting_client

_synchronizer_instance: Optional[MeetingSynchronizer] = None


def get_meeting_synchronizer() -> MeetingSynchronizer:
    """
    FastAPI dependency returning the process-wide MeetingSynchronizer.

    A single instance is shared so that its per-template locks serialize
    syncs coming from concurrent requests. Missing Zoom credentials are
    reported as 503.
    """
    global _synchronizer_instance
    if _synchronizer_instance is None:
        settings = get_settings()
        try:
            client = get_meeting_client()
        except ConfigurationError as exc:
            raise HTTPException(
                status_code=HTTPStatus.SERVICE_UNAVAILABLE,
                detail=exc.message,
            ) from exc

        _synchronizer_instance = MeetingSynchronizer(
            AsyncSessionLocal,
            client,
            tz=settings.schedule_tz,
            max_concurrency=settings.SYNC_MAX_CONCURRENCY,
        )
    return _synchronizer_instance
