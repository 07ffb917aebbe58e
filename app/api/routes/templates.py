# app/api/routes/templates.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.course_template import CourseTemplate
from app.schemas.course_template import (
    CourseTemplateCreate,
    CourseTemplateRead,
    CourseTemplateUpdate,
)

router = APIRouter(prefix="/templates", tags=["Course Templates"])

_TEMPLATE_EXAMPLE = {
    "id": 1,
    "course_name": "Conversation Club",
    "level": "bbg",
    "teacher_name": "Jane Doe",
    "day_of_week": "monday",
    "time_of_day": "20:30",
    "duration_minutes": 60,
    "messaging_group_id": "group-123",
    "host_identity": "teacher@example.com",
    "is_active": True,
    "created_at": "2024-01-01T08:00:00Z",
    "updated_at": "2024-01-01T08:00:00Z",
}


@router.post(
    "",
    response_model=CourseTemplateRead,
    status_code=HTTPStatus.CREATED,
    summary="Create a new course template",
    description=(
        "Register a weekly recurring course: one weekday and one start time "
        "(HH:MM, in the configured schedule timezone).\n\n"
        "A course taught on several weekdays is registered as one template per day. "
        "Active templates are materialized into occurrences by "
        "`/internal/generate-week`."
    ),
    responses={
        201: {
            "description": "Template successfully created.",
            "content": {"application/json": {"example": _TEMPLATE_EXAMPLE}},
        },
        422: {"description": "Validation error (unknown weekday, malformed time, ...)."},
    },
)
async def create_template(
    payload: CourseTemplateCreate,
    db: AsyncSession = Depends(get_db),
) -> CourseTemplateRead:
    template = CourseTemplate(**payload.model_dump(mode="json"))
    db.add(template)
    await db.commit()
    await db.refresh(template)

    return CourseTemplateRead.model_validate(template)


@router.get(
    "",
    response_model=list[CourseTemplateRead],
    summary="List course templates",
    description=(
        "Return all course templates.\n\n"
        "Optional filters can be used to show only active or inactive templates."
    ),
    responses={
        200: {
            "description": "List of templates returned successfully.",
            "content": {"application/json": {"example": [_TEMPLATE_EXAMPLE]}},
        }
    },
)
async def list_templates(
    only_active: bool | None = Query(
        default=None,
        description=(
            "If true, returns only templates where `is_active` is true. "
            "If false, returns only inactive templates. If omitted, returns all."
        ),
        examples=[True],
    ),
    db: AsyncSession = Depends(get_db),
) -> list[CourseTemplateRead]:
    stmt = select(CourseTemplate)
    if only_active is True:
        stmt = stmt.where(CourseTemplate.is_active.is_(True))
    elif only_active is False:
        stmt = stmt.where(CourseTemplate.is_active.is_(False))

    result = await db.execute(stmt.order_by(CourseTemplate.id.asc()))
    templates = result.scalars().all()

    return [CourseTemplateRead.model_validate(t) for t in templates]


@router.get(
    "/{template_id}",
    response_model=CourseTemplateRead,
    summary="Get course template details by ID",
    responses={
        200: {"description": "Template found and returned."},
        404: {
            "description": "No template exists with the given ID.",
            "content": {
                "application/json": {
                    "example": {"detail": "Template with id 42 not found."}
                }
            },
        },
    },
)
async def get_template(
    template_id: int = Path(
        ...,
        description="Numeric ID of the template to retrieve.",
        ge=1,
        examples=[1],
    ),
    db: AsyncSession = Depends(get_db),
) -> CourseTemplateRead:
    template = await _get_or_404(db, template_id)
    return CourseTemplateRead.model_validate(template)


@router.patch(
    "/{template_id}",
    response_model=CourseTemplateRead,
    summary="Partially update a course template",
    description=(
        "Update template fields such as `time_of_day` or `is_active` without "
        "recreating the template.\n\n"
        "Only fields provided in the request body are modified. Occurrences that are "
        "not yet linked to a meeting pick up the change at the next generation; "
        "deactivated templates lose their unlinked occurrences. If the weekday or "
        "time changes, retire the template's meeting so that the next sync creates "
        "one at the new slot."
    ),
    responses={
        200: {"description": "Template updated successfully."},
        404: {"description": "No template exists with the given ID."},
    },
)
async def update_template(
    template_id: int = Path(
        ...,
        description="Numeric ID of the template to update.",
        ge=1,
        examples=[1],
    ),
    payload: CourseTemplateUpdate | None = None,
    db: AsyncSession = Depends(get_db),
) -> CourseTemplateRead:
    template = await _get_or_404(db, template_id)

    if payload is None:
        return CourseTemplateRead.model_validate(template)

    update_data = payload.model_dump(mode="json", exclude_unset=True)
    for field, value in update_data.items():
        if value is None and field not in ("messaging_group_id", "host_identity"):
            # Required columns cannot be cleared
            continue
        setattr(template, field, value)

    await db.commit()
    await db.refresh(template)

    return CourseTemplateRead.model_validate(template)


async def _get_or_404(db: AsyncSession, template_id: int) -> CourseTemplate:
    template = await db.get(CourseTemplate, template_id)
    if template is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"Template with id {template_id} not found.",
        )
    return template
