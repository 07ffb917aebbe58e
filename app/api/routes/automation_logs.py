# app/api/routes/automation_logs.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.automation_log import AutomationLogKind, AutomationLogRead
from app.services.automation_log import list_logs

router = APIRouter(prefix="/automation-logs", tags=["Automation Logs"])


@router.get(
    "",
    response_model=list[AutomationLogRead],
    status_code=HTTPStatus.OK,
    summary="List automation log entries",
    description=(
        "Audit trail of schedule generations, meeting syncs and meeting "
        "retirements, most recent first.\n\n"
        "Every sync attempt (successful or not) leaves exactly one `meeting_sync` "
        "entry, which makes this the place to debug why an occurrence is `failed`."
    ),
    responses={
        200: {
            "description": "Log entries returned successfully.",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "id": 3,
                            "kind": "meeting_sync",
                            "outcome": "error",
                            "message": "Meeting sync failed for occurrence 1: Zoom POST /users/me/meetings failed (status=503)",
                            "details": {"error_kind": "external_service", "status_code": 503},
                            "template_id": 1,
                            "occurrence_id": 1,
                            "created_at": "2024-01-01T08:00:00Z",
                        }
                    ]
                }
            },
        }
    },
)
async def get_automation_logs(
    kind: AutomationLogKind | None = Query(
        default=None,
        description="Only return entries of this kind.",
        examples=["meeting_sync"],
    ),
    template_id: int | None = Query(
        default=None,
        description="Only return entries about this course template.",
    ),
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
) -> list[AutomationLogRead]:
    entries = await list_logs(db, kind=kind, template_id=template_id, limit=limit)
    return [AutomationLogRead.model_validate(entry) for entry in entries]
