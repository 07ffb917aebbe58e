from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, tzinfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    ProviderError,
    ScheduleSyncError,
)
from app.models.course_template import CourseTemplate
from app.models.meeting_record import MeetingRecord
from app.models.scheduled_occurrence import ScheduledOccurrence
from app.schemas.automation_log import AutomationLogKind, AutomationLogOutcome
from app.schemas.meeting import MeetingRecordRead, ProviderMeeting, SyncResult
from app.schemas.occurrence import OccurrenceStatus
from app.services.automation_log import append_log
from app.services.keyed_lock import KeyedLock
from app.services.time_window import (
    next_meeting_start,
    parse_day_of_week,
    parse_time_of_day,
)
from app.services.token_cache import utc_clock
from app.services.zoom_client import MeetingClient

logger = logging.getLogger(__name__)


async def get_active_meeting(db: AsyncSession, template_id: int) -> MeetingRecord | None:
    stmt = select(MeetingRecord).where(
        MeetingRecord.template_id == template_id,
        MeetingRecord.is_active.is_(True),
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def retire_active_meeting(
    db: AsyncSession,
    template_id: int,
    *,
    clock: Callable[[], datetime] = utc_clock,
) -> MeetingRecord:
    """
    Mark the template's active meeting record as retired so that the next
    sync creates a fresh meeting (e.g. after the template's time changed).

    Occurrences already linked to the record keep their link.
    """
    record = await get_active_meeting(db, template_id)
    if record is None:
        raise NotFoundError(f"Template {template_id} has no active meeting")

    record.is_active = False
    record.retired_at = clock()
    append_log(
        db,
        kind=AutomationLogKind.MEETING_RETIRE,
        outcome=AutomationLogOutcome.SUCCESS,
        message=f"Meeting {record.external_meeting_id} retired for template {template_id}",
        details={"meeting_record_id": record.id},
        template_id=template_id,
    )
    await db.commit()
    return record


class MeetingSynchronizer:
    """
    Creates (or reuses) the recurring provider meeting of an occurrence's
    template and records the outcome on the occurrence.

    Guarantees
    ----------
    - At most one provider meeting per template: syncs of the same template
      are serialized, and an existing active MeetingRecord is reused instead
      of calling the provider again.
    - Failures are returned as ``SyncResult`` values and persisted
      (``status=failed``); they never abort other items of a bulk sync.
    - Exactly one ``meeting_sync`` automation log entry per attempt.
    - Work already started keeps running to completion (and persists its
      outcome) even if the caller stops waiting.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: MeetingClient,
        *,
        tz: tzinfo,
        clock: Callable[[], datetime] = utc_clock,
        max_concurrency: int = 4,
        template_locks: KeyedLock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._tz = tz
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._template_locks = template_locks or KeyedLock()
        self._inflight: set[asyncio.Task] = set()

    async def sync(self, occurrence_id: int) -> SyncResult:
        """
        Synchronize a single occurrence.
        """
        return await asyncio.shield(self._spawn(self._sync_guarded(occurrence_id)))

    async def sync_bulk(self, occurrence_ids: Sequence[int]) -> list[SyncResult]:
        """
        Synchronize many occurrences with bounded parallelism.

        Returns one result per id, in input order.
        """
        tasks = [self._spawn(self._bounded_sync(occurrence_id)) for occurrence_id in occurrence_ids]
        results = await asyncio.gather(*(asyncio.shield(task) for task in tasks))

        succeeded = sum(1 for result in results if result.ok)
        logger.info("Bulk meeting sync: %d of %d succeeded", succeeded, len(results))
        return list(results)

    def _spawn(self, coro: Awaitable[SyncResult]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _bounded_sync(self, occurrence_id: int) -> SyncResult:
        async with self._semaphore:
            return await self._sync_guarded(occurrence_id)

    async def _sync_guarded(self, occurrence_id: int) -> SyncResult:
        try:
            return await self._sync_one(occurrence_id)
        except SQLAlchemyError as exc:
            # Storage failure: the outcome could not be persisted, but the
            # caller still gets a value for this item.
            logger.exception("Persisting sync outcome for occurrence %s failed", occurrence_id)
            return SyncResult(
                occurrence_id=occurrence_id,
                ok=False,
                error_kind="storage",
                error_message=str(exc),
            )

    async def _sync_one(self, occurrence_id: int) -> SyncResult:
        async with self._session_factory() as db:
            occurrence = await db.get(ScheduledOccurrence, occurrence_id)
            if occurrence is None:
                return await self._record_failure(
                    db,
                    occurrence_id,
                    None,
                    NotFoundError(f"Occurrence {occurrence_id} not found"),
                )

            template = await db.get(CourseTemplate, occurrence.template_id)
            if template is None:
                return await self._record_failure(
                    db,
                    occurrence_id,
                    occurrence,
                    NotFoundError(f"Template {occurrence.template_id} of occurrence {occurrence_id} not found"),
                )

            # Keep plain values: a rollback below expires ORM instances.
            template_id = template.id
            topic = f"{template.course_name} - {template.teacher_name}"

            async with self._template_locks.hold(template_id):
                existing = await get_active_meeting(db, template_id)
                if existing is not None:
                    return await self._link(db, occurrence, existing, reused=True)

                try:
                    weekday = parse_day_of_week(template.day_of_week)
                    first_start = next_meeting_start(
                        weekday,
                        parse_time_of_day(template.time_of_day),
                        self._clock(),
                        self._tz,
                    )
                    provider_meeting = await self._client.create_recurring_meeting(
                        host_identity=template.host_identity,
                        topic=topic,
                        first_start=first_start,
                        duration_minutes=template.duration_minutes,
                        weekday=weekday,
                    )
                except ScheduleSyncError as exc:
                    return await self._record_failure(db, occurrence_id, occurrence, exc)
                except Exception as exc:
                    logger.exception("Unexpected provider failure for occurrence %s", occurrence_id)
                    return await self._record_failure(
                        db,
                        occurrence_id,
                        occurrence,
                        ProviderError(
                            f"Unexpected provider failure: {exc!r}",
                            details={"exception_type": type(exc).__name__},
                        ),
                    )

                record = _build_record(template_id, provider_meeting)
                db.add(record)
                try:
                    await db.flush()
                except IntegrityError:
                    await db.rollback()
                    return await self._resolve_conflict(db, occurrence_id, template_id, provider_meeting)

                return await self._link(db, occurrence, record, reused=False)

    async def _resolve_conflict(
        self,
        db: AsyncSession,
        occurrence_id: int,
        template_id: int,
        provider_meeting: ProviderMeeting,
    ) -> SyncResult:
        """
        Another writer stored an active record for the template first. Its
        record wins; ours is reported in the log so it can be cleaned up on
        the provider side.
        """
        occurrence = await db.get(ScheduledOccurrence, occurrence_id)
        winner = await get_active_meeting(db, template_id)
        conflict = ConflictError(
            f"Template {template_id} already has an active meeting",
            details={"discarded_external_meeting_id": provider_meeting.external_meeting_id},
        )
        if occurrence is None or winner is None:
            return await self._record_failure(db, occurrence_id, occurrence, conflict)

        logger.warning("%s; linking occurrence %s to meeting record %s", conflict.message, occurrence_id, winner.id)
        return await self._link(db, occurrence, winner, reused=True, extra_details=conflict.details)

    async def _link(
        self,
        db: AsyncSession,
        occurrence: ScheduledOccurrence,
        record: MeetingRecord,
        *,
        reused: bool,
        extra_details: dict | None = None,
    ) -> SyncResult:
        occurrence.meeting_id = record.id
        occurrence.status = OccurrenceStatus.SCHEDULED.value

        action = "reused" if reused else "created"
        append_log(
            db,
            kind=AutomationLogKind.MEETING_SYNC,
            outcome=AutomationLogOutcome.SUCCESS,
            message=(
                f"Meeting {record.external_meeting_id} {action} for {occurrence.course_name} "
                f"on {occurrence.scheduled_date.isoformat()}"
            ),
            details={
                "meeting_record_id": record.id,
                "external_meeting_id": record.external_meeting_id,
                "join_url": record.join_url,
                "reused": reused,
                **(extra_details or {}),
            },
            template_id=record.template_id,
            occurrence_id=occurrence.id,
        )
        result = SyncResult(
            occurrence_id=occurrence.id,
            ok=True,
            reused=reused,
            meeting=MeetingRecordRead.model_validate(record),
        )
        await db.commit()

        logger.info("Occurrence %s linked to meeting %s (%s)", result.occurrence_id, result.meeting.external_meeting_id, action)
        return result

    async def _record_failure(
        self,
        db: AsyncSession,
        occurrence_id: int,
        occurrence: ScheduledOccurrence | None,
        error: ScheduleSyncError,
    ) -> SyncResult:
        template_id = None
        if occurrence is not None:
            template_id = occurrence.template_id
            occurrence.status = OccurrenceStatus.FAILED.value
            occurrence.meeting_id = None

        details = {"error_kind": error.kind, "error": error.message, **error.details}
        if isinstance(error, ProviderError) and error.status_code is not None:
            details["status_code"] = error.status_code

        append_log(
            db,
            kind=AutomationLogKind.MEETING_SYNC,
            outcome=AutomationLogOutcome.ERROR,
            message=f"Meeting sync failed for occurrence {occurrence_id}: {error.message}",
            details=details,
            template_id=template_id,
            occurrence_id=occurrence_id,
        )
        await db.commit()

        logger.warning("Meeting sync failed for occurrence %s (%s): %s", occurrence_id, error.kind, error.message)
        return SyncResult(
            occurrence_id=occurrence_id,
            ok=False,
            error_kind=error.kind,
            error_message=error.message,
        )


def _build_record(template_id: int, provider_meeting: ProviderMeeting) -> MeetingRecord:
    return MeetingRecord(
        template_id=template_id,
        external_meeting_id=provider_meeting.external_meeting_id,
        join_url=provider_meeting.join_url,
        first_occurrence_start=provider_meeting.first_occurrence_start,
        provider_status=provider_meeting.provider_status,
        is_active=True,
    )
