from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class OccurrenceStatus(str, Enum):
    """
    Lifecycle of a scheduled occurrence.

    pending   -> no meeting linked yet (initial)
    scheduled -> linked to an active meeting record
    failed    -> last sync attempt failed; sync can be re-invoked
    """

    PENDING = "pending"
    SCHEDULED = "scheduled"
    FAILED = "failed"


class ScheduledOccurrenceRead(BaseModel):
    """
    Public representation of a ScheduledOccurrence.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., examples=[1])
    template_id: int = Field(
        ...,
        description="Identifier of the course template this occurrence was generated from.",
    )
    course_name: str
    level: str
    teacher_name: str
    duration_minutes: int
    messaging_group_id: str | None = None
    scheduled_date: date = Field(..., examples=["2024-01-01"])
    scheduled_time: time = Field(..., examples=["20:30:00"])
    meeting_id: int | None = Field(
        None,
        description="Linked meeting record, set once the meeting is synchronized.",
    )
    status: OccurrenceStatus = Field(..., examples=["pending"])
    created_at: datetime | None = None


class WeekGenerationSummary(BaseModel):
    """
    Result of materializing one week of occurrences.
    """

    week_start: date = Field(..., description="Monday of the materialized week.", examples=["2024-01-01"])
    week_end: date = Field(..., description="Exclusive end of the window (next Monday).", examples=["2024-01-08"])
    templates_evaluated: int = Field(..., description="Active templates considered in this run.")
    created: int = Field(0, description="Occurrences inserted.")
    updated: int = Field(0, description="Unlinked occurrences refreshed from their template.")
    unchanged: int = Field(0, description="Unlinked occurrences already matching their template.")
    preserved: int = Field(0, description="Occurrences kept unchanged because a meeting is linked.")
    removed: int = Field(0, description="Occurrences deleted (inactive template or duplicate).")
    skipped_template_ids: list[int] = Field(
        default_factory=list,
        description="Templates skipped because of malformed day/time/duration.",
    )
    occurrences: list[ScheduledOccurrenceRead] = Field(
        default_factory=list,
        description="All occurrences in the window after reconciliation, ordered by date and time.",
    )
