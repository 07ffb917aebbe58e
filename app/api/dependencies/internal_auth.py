# app/api/dependencies/internal_auth.py
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import get_settings


async def verify_internal_api_key(
    internal_api_key: Optional[str] = Header(
        default=None,
        alias="X-Internal-Api-Key",
        description="Internal API key required for /internal endpoints in non-local environments.",
    ),
) -> None:
    """
    Dependency to protect /internal endpoints (generation, meeting sync).

    Rules
    -----
    - APP_ENV in ("local", "test"):
        - If INTERNAL_API_KEY is not set -> no auth enforced (convenient for local dev).
        - If INTERNAL_API_KEY is set      -> header must match the configured key.
    - APP_ENV not in ("local", "test")  [e.g. dev/stage/prod]:
        - INTERNAL_API_KEY must be set, otherwise 500 (misconfiguration).
        - Header must be present and match INTERNAL_API_KEY, otherwise 401.
    """
    settings = get_settings()
    env = (settings.APP_ENV or "local").lower()
    expected = settings.INTERNAL_API_KEY

    if env in ("local", "test"):
        if not expected:
            return

        if internal_api_key != expected:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing internal API key.",
            )
        return

    if not expected:
        # Fail fast instead of exposing scheduler endpoints unauthenticated
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_KEY not configured for this environment.",
        )

    if internal_api_key != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing internal API key.",
        )
