from __future__ import annotations

import json
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.automation_log import AutomationLogEntry
from app.schemas.automation_log import AutomationLogKind, AutomationLogOutcome


def append_log(
    db: AsyncSession,
    *,
    kind: AutomationLogKind,
    outcome: AutomationLogOutcome,
    message: str,
    details: dict[str, Any] | None = None,
    template_id: int | None = None,
    occurrence_id: int | None = None,
) -> AutomationLogEntry:
    """
    Add an audit entry to the session.

    The entry is not committed here: it becomes visible together with the
    state change it describes, when the caller commits.
    """
    entry = AutomationLogEntry(
        kind=kind.value,
        outcome=outcome.value,
        message=message,
        details=json.dumps(details, default=str) if details else None,
        template_id=template_id,
        occurrence_id=occurrence_id,
    )
    db.add(entry)
    return entry


async def list_logs(
    db: AsyncSession,
    *,
    kind: AutomationLogKind | None = None,
    template_id: int | None = None,
    limit: int = 100,
) -> list[AutomationLogEntry]:
    """
    Most recent entries first, optionally filtered by kind and template.
    """
    stmt = select(AutomationLogEntry)
    if kind is not None:
        stmt = stmt.where(AutomationLogEntry.kind == kind.value)
    if template_id is not None:
        stmt = stmt.where(AutomationLogEntry.template_id == template_id)
    stmt = stmt.order_by(AutomationLogEntry.created_at.desc(), AutomationLogEntry.id.desc()).limit(limit)

    result = await db.execute(stmt)
    return list(result.scalars().all())
