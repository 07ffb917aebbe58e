# app/main.py
from fastapi import FastAPI

from app.api.routes import (
    automation_logs,
    health,
    internal,
    meetings,
    schedule,
    templates,
)
from app.core.config import get_settings
from app.core.logging_config import setup_logging
from app.db.session import init_db_for_startup


def create_app() -> FastAPI:
    """
    Application factory for the Class Schedule Sync service.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend service that materializes weekly recurring course templates into\n"
            "dated class occurrences and attaches a recurring Zoom meeting to each\n"
            "course, with an audit log of every generation and sync."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(templates.router)
    app.include_router(schedule.router)
    app.include_router(meetings.router)
    app.include_router(automation_logs.router)
    app.include_router(internal.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        setup_logging(settings.LOG_LEVEL)
        await init_db_for_startup()

    return app


app = create_app()
