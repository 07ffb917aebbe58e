from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProviderMeeting(BaseModel):
    """
    A recurring meeting as returned by the meeting provider, before it is
    persisted as a MeetingRecord.
    """

    external_meeting_id: str = Field(..., description="Provider-side meeting id.")
    join_url: str = Field(..., description="URL participants use to join.")
    first_occurrence_start: datetime = Field(
        ...,
        description="Start of the first occurrence of the series (timezone-aware).",
    )
    provider_status: str | None = Field(None, examples=["waiting"])
    raw: dict | None = Field(
        None,
        description="Raw provider JSON for debugging purposes.",
    )


class MeetingRecordRead(BaseModel):
    """
    Public representation of a MeetingRecord.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    template_id: int
    external_meeting_id: str
    join_url: str
    first_occurrence_start: datetime
    provider_status: str | None = None
    is_active: bool
    created_at: datetime | None = None
    retired_at: datetime | None = None


class SyncResult(BaseModel):
    """
    Outcome of synchronizing one occurrence. Failures are values, not
    exceptions, so bulk callers can enumerate partial outcomes.
    """

    occurrence_id: int
    ok: bool
    reused: bool = Field(
        False,
        description="True when an already active meeting for the template was linked.",
    )
    meeting: MeetingRecordRead | None = None
    error_kind: str | None = Field(None, examples=["external_service"])
    error_message: str | None = None


class BulkSyncRequest(BaseModel):
    occurrence_ids: list[int] = Field(..., min_length=1, examples=[[1, 2, 3]])


class BulkSyncSummary(BaseModel):
    """
    Response of the bulk sync endpoint: one result per requested id, in order.
    """

    requested: int
    succeeded: int
    failed: int
    results: list[SyncResult]
