from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date as date_type, timedelta, tzinfo

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.models.course_template import CourseTemplate
from app.models.scheduled_occurrence import ScheduledOccurrence
from app.schemas.automation_log import AutomationLogKind, AutomationLogOutcome
from app.schemas.occurrence import (
    OccurrenceStatus,
    ScheduledOccurrenceRead,
    WeekGenerationSummary,
)
from app.services.automation_log import append_log
from app.services.keyed_lock import KeyedLock
from app.services.time_window import (
    WEEK_LENGTH,
    OccurrenceSlot,
    expand,
    normalize_week_start,
)

logger = logging.getLogger(__name__)

# Generations of the same week are serialized inside this process; the
# (template_id, scheduled_date) unique constraint covers other processes.
window_locks = KeyedLock()


async def generate_week(
    db: AsyncSession,
    week_start: date_type,
    *,
    tz: tzinfo | None = None,
    locks: KeyedLock | None = None,
) -> WeekGenerationSummary:
    """
    Materialize the occurrences of all active templates for one week.

    Behavior
    --------
    - ``week_start`` is normalized to the Monday on/before it; the window is
      ``[monday, monday + 7 days)``.
    - An occurrence that already has a linked meeting is kept unchanged.
    - An unlinked occurrence is refreshed in place from its template (same
      id), or inserted as ``pending`` when none exists yet.
    - Occurrences of templates that are no longer active are deleted.
    - Templates with a malformed day/time/duration are logged and skipped;
      their existing occurrences are left alone.

    The whole reconciliation is committed at once; on any error the session
    is rolled back and the error re-raised.
    """
    tz = tz or get_settings().schedule_tz
    locks = locks or window_locks

    monday = normalize_week_start(week_start)
    week_end = monday + WEEK_LENGTH

    async with locks.hold(monday):
        try:
            summary = await _reconcile_week(db, monday, week_end, tz)
            await db.commit()
        except Exception as exc:
            logger.exception("Generation of week %s failed", monday)
            try:
                await db.rollback()
                append_log(
                    db,
                    kind=AutomationLogKind.SCHEDULE_GENERATION,
                    outcome=AutomationLogOutcome.ERROR,
                    message=f"Schedule generation failed for week of {monday.isoformat()}",
                    details={"error": str(exc), "week_start": monday},
                )
                await db.commit()
            except SQLAlchemyError:
                logger.exception("Could not record failed generation of week %s", monday)
            raise

    logger.info(
        "Week %s generated: %d created, %d updated, %d preserved, %d removed, %d skipped",
        monday,
        summary.created,
        summary.updated,
        summary.preserved,
        summary.removed,
        len(summary.skipped_template_ids),
    )
    return summary


async def list_occurrences(
    db: AsyncSession,
    start_date: date_type,
    end_date: date_type,
) -> list[ScheduledOccurrence]:
    """
    Occurrences with ``start_date <= scheduled_date <= end_date``, ordered by
    date and time.
    """
    if end_date < start_date:
        raise ValueError("end_date must be greater than or equal to start_date")

    return await _load_window(db, start_date, end_date + timedelta(days=1))


async def _load_window(
    db: AsyncSession,
    start: date_type,
    end_exclusive: date_type,
) -> list[ScheduledOccurrence]:
    stmt = (
        select(ScheduledOccurrence)
        .where(
            ScheduledOccurrence.scheduled_date >= start,
            ScheduledOccurrence.scheduled_date < end_exclusive,
        )
        .order_by(
            ScheduledOccurrence.scheduled_date,
            ScheduledOccurrence.scheduled_time,
            ScheduledOccurrence.id,
        )
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _reconcile_week(
    db: AsyncSession,
    monday: date_type,
    week_end: date_type,
    tz: tzinfo,
) -> WeekGenerationSummary:
    stmt = (
        select(CourseTemplate)
        .where(CourseTemplate.is_active.is_(True))
        .order_by(CourseTemplate.id)
    )
    result = await db.execute(stmt)
    templates = list(result.scalars().all())

    existing_by_template: dict[int, list[ScheduledOccurrence]] = defaultdict(list)
    for occurrence in await _load_window(db, monday, week_end):
        existing_by_template[occurrence.template_id].append(occurrence)

    summary = WeekGenerationSummary(
        week_start=monday,
        week_end=week_end,
        templates_evaluated=len(templates),
    )
    to_delete: list[ScheduledOccurrence] = []
    to_refresh: list[tuple[ScheduledOccurrence | None, CourseTemplate, OccurrenceSlot]] = []

    for template in templates:
        rows = existing_by_template.pop(template.id, [])

        try:
            slot = expand(template, monday, week_end, tz)
        except ValidationError as exc:
            logger.warning("Skipping template %s: %s", template.id, exc.message)
            summary.skipped_template_ids.append(template.id)
            continue

        if slot is None:
            continue

        linked = [row for row in rows if row.meeting_id is not None]
        unlinked = [row for row in rows if row.meeting_id is None]

        if linked:
            # A meeting is already attached for this week: never touch it.
            summary.preserved += len(linked)
            to_delete.extend(unlinked)
            continue

        to_refresh.append((unlinked[0] if unlinked else None, template, slot))
        to_delete.extend(unlinked[1:])

    # Whatever is left belongs to templates that are no longer active.
    for rows in existing_by_template.values():
        to_delete.extend(rows)

    for occurrence in to_delete:
        await db.delete(occurrence)
    summary.removed = len(to_delete)
    # Deletes go first so a refreshed row can take over a freed date.
    await db.flush()

    for occurrence, template, slot in to_refresh:
        if occurrence is None:
            occurrence = ScheduledOccurrence(template_id=template.id)
            _apply_slot(occurrence, template, slot)
            db.add(occurrence)
            summary.created += 1
        elif _apply_slot(occurrence, template, slot):
            summary.updated += 1
        else:
            summary.unchanged += 1

    append_log(
        db,
        kind=AutomationLogKind.SCHEDULE_GENERATION,
        outcome=AutomationLogOutcome.SUCCESS,
        message=(
            f"Schedule generated for week {monday.isoformat()} to "
            f"{(week_end - timedelta(days=1)).isoformat()}"
        ),
        details={
            "created": summary.created,
            "updated": summary.updated,
            "preserved": summary.preserved,
            "removed": summary.removed,
            "skipped_template_ids": summary.skipped_template_ids,
        },
    )
    await db.flush()

    summary.occurrences = [
        ScheduledOccurrenceRead.model_validate(occurrence)
        for occurrence in await _load_window(db, monday, week_end)
    ]
    return summary


def _apply_slot(
    occurrence: ScheduledOccurrence,
    template: CourseTemplate,
    slot: OccurrenceSlot,
) -> bool:
    """
    Copy template fields and the computed slot onto an unlinked occurrence.

    Returns True when at least one field changed.
    """
    values = {
        "course_name": template.course_name,
        "level": template.level,
        "teacher_name": template.teacher_name,
        "duration_minutes": template.duration_minutes,
        "messaging_group_id": template.messaging_group_id,
        "scheduled_date": slot.scheduled_date,
        "scheduled_time": slot.scheduled_time,
        "status": OccurrenceStatus.PENDING.value,
    }
    changed = False
    for field, value in values.items():
        if getattr(occurrence, field) != value:
            setattr(occurrence, field, value)
            changed = True
    return changed
