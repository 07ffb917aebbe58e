# app/api/routes/internal.py
from datetime import date as date_type, datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.internal_auth import verify_internal_api_key
from app.api.dependencies.meeting_sync import get_meeting_synchronizer
from app.core.config import get_settings
from app.core.exceptions import NotFoundError
from app.db.session import get_db
from app.schemas.meeting import (
    BulkSyncRequest,
    BulkSyncSummary,
    MeetingRecordRead,
    SyncResult,
)
from app.schemas.occurrence import WeekGenerationSummary
from app.services.materializer import generate_week
from app.services.meeting_sync import MeetingSynchronizer, retire_active_meeting

router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_api_key)],
)


@router.post(
    "/generate-week",
    response_model=WeekGenerationSummary,
    status_code=HTTPStatus.OK,
    summary="Materialize one week of occurrences from the active course templates",
    description=(
        "Creates or refreshes the scheduled occurrences of **all active course "
        "templates** for the week containing `week_start` (normalized to its "
        "Monday; defaults to the current week in the schedule timezone).\n\n"
        "Intended to be called from a cron job or scheduler. Safe to repeat:\n"
        "- Occurrences already linked to a meeting are never modified.\n"
        "- Unlinked occurrences are refreshed in place from their template.\n"
        "- Occurrences of deactivated templates are removed.\n"
        "- Templates with a malformed day/time are skipped and reported."
    ),
    responses={
        200: {
            "description": "Week materialized. A summary is returned.",
            "content": {
                "application/json": {
                    "example": {
                        "week_start": "2024-01-01",
                        "week_end": "2024-01-08",
                        "templates_evaluated": 1,
                        "created": 1,
                        "updated": 0,
                        "unchanged": 0,
                        "preserved": 0,
                        "removed": 0,
                        "skipped_template_ids": [],
                        "occurrences": [
                            {
                                "id": 1,
                                "template_id": 1,
                                "course_name": "Conversation Club",
                                "level": "bbg",
                                "teacher_name": "Jane Doe",
                                "duration_minutes": 60,
                                "messaging_group_id": None,
                                "scheduled_date": "2024-01-01",
                                "scheduled_time": "20:30:00",
                                "meeting_id": None,
                                "status": "pending",
                                "created_at": "2024-01-01T08:00:00Z",
                            }
                        ],
                    }
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
    },
)
async def trigger_generate_week(
    week_start: date_type | None = Query(
        default=None,
        description=(
            "Any date of the week to materialize. "
            "If omitted, the current date in the schedule timezone is used."
        ),
        examples=["2024-01-01"],
    ),
    db: AsyncSession = Depends(get_db),
) -> WeekGenerationSummary:
    """
    Run the weekly materialization.
    """
    settings = get_settings()
    if week_start is None:
        week_start = datetime.now(tz=settings.schedule_tz).date()

    return await generate_week(db, week_start, tz=settings.schedule_tz)


@router.post(
    "/occurrences/{occurrence_id}/sync",
    response_model=SyncResult,
    status_code=HTTPStatus.OK,
    summary="Create or reuse the Zoom meeting of one occurrence",
    description=(
        "Links the occurrence to its template's recurring Zoom meeting, creating "
        "the meeting when the template has no active one yet.\n\n"
        "Failures (unknown occurrence, Zoom errors, ...) are returned in the body "
        "with `ok=false`, an `error_kind` and an `error_message`; the occurrence is "
        "marked `failed` and the sync can be re-invoked."
    ),
    responses={
        200: {
            "description": "Sync attempted; inspect `ok` for the outcome.",
            "content": {
                "application/json": {
                    "example": {
                        "occurrence_id": 1,
                        "ok": True,
                        "reused": False,
                        "meeting": {
                            "id": 1,
                            "template_id": 1,
                            "external_meeting_id": "85012345678",
                            "join_url": "https://zoom.us/j/85012345678",
                            "first_occurrence_start": "2024-01-08T20:30:00Z",
                            "provider_status": "waiting",
                            "is_active": True,
                            "created_at": "2024-01-01T08:00:00Z",
                            "retired_at": None,
                        },
                        "error_kind": None,
                        "error_message": None,
                    }
                }
            },
        },
        401: {"description": "Missing or invalid internal API key (if configured)."},
        503: {"description": "Zoom credentials are not configured."},
    },
)
async def sync_occurrence(
    occurrence_id: int = Path(..., ge=1, description="Occurrence to synchronize."),
    synchronizer: MeetingSynchronizer = Depends(get_meeting_synchronizer),
) -> SyncResult:
    return await synchronizer.sync(occurrence_id)


@router.post(
    "/occurrences/sync-bulk",
    response_model=BulkSyncSummary,
    status_code=HTTPStatus.OK,
    summary="Synchronize several occurrences",
    description=(
        "Synchronizes every requested occurrence with bounded parallelism. "
        "A failure of one item never affects the others; `results` holds one "
        "entry per requested id, in request order."
    ),
    responses={
        401: {"description": "Missing or invalid internal API key (if configured)."},
        503: {"description": "Zoom credentials are not configured."},
    },
)
async def sync_occurrences_bulk(
    payload: BulkSyncRequest,
    synchronizer: MeetingSynchronizer = Depends(get_meeting_synchronizer),
) -> BulkSyncSummary:
    results = await synchronizer.sync_bulk(payload.occurrence_ids)
    succeeded = sum(1 for result in results if result.ok)
    return BulkSyncSummary(
        requested=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=results,
    )


@router.post(
    "/templates/{template_id}/retire-meeting",
    response_model=MeetingRecordRead,
    status_code=HTTPStatus.OK,
    summary="Retire the active Zoom meeting of a template",
    description=(
        "Marks the template's active meeting record as retired, e.g. after its "
        "weekday or time changed. The next sync of one of its occurrences creates "
        "a fresh meeting. Occurrences already linked keep their link."
    ),
    responses={
        401: {"description": "Missing or invalid internal API key (if configured)."},
        404: {
            "description": "The template has no active meeting.",
            "content": {
                "application/json": {
                    "example": {"detail": "Template 42 has no active meeting"}
                }
            },
        },
    },
)
async def retire_template_meeting(
    template_id: int = Path(..., ge=1, description="Template whose meeting is retired."),
    db: AsyncSession = Depends(get_db),
) -> MeetingRecordRead:
    try:
        record = await retire_active_meeting(db, template_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=exc.message) from exc

    return MeetingRecordRead.model_validate(record)
