# app/api/routes/meetings.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.meeting_record import MeetingRecord
from app.schemas.meeting import MeetingRecordRead

router = APIRouter(prefix="/meetings", tags=["Meetings"])

_MEETING_EXAMPLE = {
    "id": 1,
    "template_id": 1,
    "external_meeting_id": "85746065432",
    "join_url": "https://zoom.us/j/85746065432",
    "first_occurrence_start": "2024-01-01T20:30:00-03:00",
    "provider_status": "waiting",
    "is_active": True,
    "created_at": "2024-01-01T08:00:00Z",
    "retired_at": None,
}


@router.get(
    "",
    response_model=list[MeetingRecordRead],
    summary="List meeting records",
    description=(
        "Return the recurring provider meetings stored for course templates.\n\n"
        "A template has at most one active meeting; retired meetings stay listed "
        "so that occurrences linked to them can still be traced."
    ),
    responses={
        200: {
            "description": "List of meeting records returned successfully.",
            "content": {"application/json": {"example": [_MEETING_EXAMPLE]}},
        }
    },
)
async def list_meetings(
    template_id: int | None = Query(
        default=None,
        description="Only return meetings of this course template.",
        ge=1,
        examples=[1],
    ),
    only_active: bool | None = Query(
        default=None,
        description=(
            "If true, returns only active meetings. "
            "If false, returns only retired meetings. If omitted, returns all."
        ),
        examples=[True],
    ),
    db: AsyncSession = Depends(get_db),
) -> list[MeetingRecordRead]:
    stmt = select(MeetingRecord)
    if template_id is not None:
        stmt = stmt.where(MeetingRecord.template_id == template_id)
    if only_active is True:
        stmt = stmt.where(MeetingRecord.is_active.is_(True))
    elif only_active is False:
        stmt = stmt.where(MeetingRecord.is_active.is_(False))

    result = await db.execute(stmt.order_by(MeetingRecord.id.asc()))
    records = result.scalars().all()

    return [MeetingRecordRead.model_validate(r) for r in records]


@router.get(
    "/{meeting_id}",
    response_model=MeetingRecordRead,
    summary="Get meeting record details by ID",
    responses={
        200: {"description": "Meeting record found and returned."},
        404: {
            "description": "No meeting record exists with the given ID.",
            "content": {
                "application/json": {
                    "example": {"detail": "Meeting with id 42 not found."}
                }
            },
        },
    },
)
async def get_meeting(
    meeting_id: int = Path(
        ...,
        description="Numeric ID of the meeting record to retrieve.",
        ge=1,
        examples=[1],
    ),
    db: AsyncSession = Depends(get_db),
) -> MeetingRecordRead:
    record = await db.get(MeetingRecord, meeting_id)
    if record is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Meeting with id {meeting_id} not found.",
        )
    return MeetingRecordRead.model_validate(record)
