# app/api/routes/schedule.py
from datetime import date as date_type
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.scheduled_occurrence import ScheduledOccurrence
from app.schemas.occurrence import ScheduledOccurrenceRead
from app.services.materializer import list_occurrences

router = APIRouter(
    prefix="/schedule",
    tags=["Schedule"],
)


@router.get(
    "/occurrences",
    response_model=list[ScheduledOccurrenceRead],
    status_code=HTTPStatus.OK,
    summary="List scheduled occurrences in a date range",
    description=(
        "Return the materialized occurrences whose date falls in the given range, "
        "ordered by date and time.\n\n"
        "The range is **inclusive** of both `start_date` and `end_date`. Occurrences "
        "only exist for weeks that were generated through `/internal/generate-week`."
    ),
    responses={
        200: {
            "description": "Occurrences returned successfully.",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "id": 1,
                            "template_id": 1,
                            "course_name": "Conversation Club",
                            "level": "bbg",
                            "teacher_name": "Jane Doe",
                            "duration_minutes": 60,
                            "messaging_group_id": "group-123",
                            "scheduled_date": "2024-01-01",
                            "scheduled_time": "20:30:00",
                            "meeting_id": 1,
                            "status": "scheduled",
                            "created_at": "2024-01-01T08:00:00Z",
                        }
                    ]
                }
            },
        },
        400: {"description": "`end_date` is before `start_date`."},
        422: {"description": "Validation error (e.g. missing or invalid dates)."},
    },
)
async def get_occurrences(
    start_date: date_type = Query(
        ...,
        description="Start date (inclusive) in ISO format (YYYY-MM-DD).",
        examples=["2024-01-01"],
    ),
    end_date: date_type = Query(
        ...,
        description=(
            "End date (inclusive) in ISO format (YYYY-MM-DD). "
            "Must be greater than or equal to start_date."
        ),
        examples=["2024-01-07"],
    ),
    db: AsyncSession = Depends(get_db),
) -> list[ScheduledOccurrenceRead]:
    try:
        occurrences = await list_occurrences(db, start_date, end_date)
    except ValueError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    return [ScheduledOccurrenceRead.model_validate(o) for o in occurrences]


@router.get(
    "/occurrences/{occurrence_id}",
    response_model=ScheduledOccurrenceRead,
    status_code=HTTPStatus.OK,
    summary="Get a scheduled occurrence by ID",
    responses={
        404: {
            "description": "No occurrence exists with the given ID.",
            "content": {
                "application/json": {
                    "example": {"detail": "Occurrence with id 42 not found."}
                }
            },
        },
    },
)
async def get_occurrence(
    occurrence_id: int = Path(..., ge=1, description="Numeric ID of the occurrence."),
    db: AsyncSession = Depends(get_db),
) -> ScheduledOccurrenceRead:
    occurrence = await db.get(ScheduledOccurrence, occurrence_id)
    if occurrence is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Occurrence with id {occurrence_id} not found.",
        )
    return ScheduledOccurrenceRead.model_validate(occurrence)
