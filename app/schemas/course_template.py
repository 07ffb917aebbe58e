from __future__ import annotations

import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

_TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DayOfWeek(str, Enum):
    """
    Weekday on which a course template takes place, in ISO order.
    """

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def iso_index(self) -> int:
        """0 for Monday ... 6 for Sunday, matching ``date.weekday()``."""
        return list(DayOfWeek).index(self)


class CourseLevel(str, Enum):
    """
    Course level, stored as the short code used by the school.
    """

    BEGINNER = "bbg"
    INTERMEDIATE = "abg"
    ADVANCED = "ig"


def _validate_time_of_day(value: str | None) -> str | None:
    if value is not None and not _TIME_OF_DAY_RE.match(value):
        raise ValueError("time_of_day must use 24h HH:MM format")
    return value


# --------------------------------------------------------------------------
# Base schema (POST /templates)
# --------------------------------------------------------------------------

class CourseTemplateBase(BaseModel):
    """
    Fields every course template must define.
    """

    course_name: str = Field(
        ...,
        description="Human-readable course name.",
        examples=["Conversation Club"],
    )
    level: CourseLevel = Field(
        ...,
        description="Course level code: bbg (beginner), abg (intermediate), ig (advanced).",
        examples=["bbg"],
    )
    teacher_name: str = Field(..., examples=["Jane Doe"])
    day_of_week: DayOfWeek = Field(
        ...,
        description="Weekday on which the course takes place.",
        examples=["monday"],
    )
    time_of_day: str = Field(
        ...,
        description="Start time (HH:MM, 24h) in the configured schedule timezone.",
        examples=["20:30"],
    )
    duration_minutes: int = Field(..., gt=0, examples=[60])
    messaging_group_id: str | None = Field(
        default=None,
        description="Opaque messaging group identifier, passed through for display.",
    )
    host_identity: str | None = Field(
        default=None,
        description="Zoom user id or email under which meetings are created.",
        examples=["teacher@example.com"],
    )
    is_active: bool = Field(
        default=True,
        description="Whether the template is materialized into weekly occurrences.",
    )

    @field_validator("time_of_day")
    @classmethod
    def check_time_of_day(cls, value: str | None) -> str | None:
        return _validate_time_of_day(value)


class CourseTemplateCreate(CourseTemplateBase):
    """
    Schema for creating a new course template.
    """
    pass


class CourseTemplateUpdate(BaseModel):
    """
    Schema for updating a course template.
    All fields are optional; only provided fields are updated.
    """
    course_name: str | None = Field(default=None)
    level: CourseLevel | None = Field(default=None)
    teacher_name: str | None = Field(default=None)
    day_of_week: DayOfWeek | None = Field(default=None)
    time_of_day: str | None = Field(default=None)
    duration_minutes: int | None = Field(default=None, gt=0)
    messaging_group_id: str | None = Field(default=None)
    host_identity: str | None = Field(default=None)
    is_active: bool | None = Field(default=None)

    @field_validator("time_of_day")
    @classmethod
    def check_time_of_day(cls, value: str | None) -> str | None:
        return _validate_time_of_day(value)


class CourseTemplateRead(BaseModel):
    """
    Response schema for reading a course template.

    Day and level are exposed as stored, so rows written by other tools
    with unexpected values can still be listed and fixed.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    course_name: str
    level: str
    teacher_name: str
    day_of_week: str
    time_of_day: str
    duration_minutes: int
    messaging_group_id: str | None = None
    host_identity: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
