import json
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class AutomationLogKind(str, Enum):
    MEETING_SYNC = "meeting_sync"
    SCHEDULE_GENERATION = "schedule_generation"
    MEETING_RETIRE = "meeting_retire"


class AutomationLogOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class AutomationLogRead(BaseModel):
    """
    Public representation of an automation log entry. ``details`` is the
    decoded JSON payload.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    outcome: AutomationLogOutcome
    message: str
    details: dict | None = None
    template_id: int | None = None
    occurrence_id: int | None = None
    created_at: datetime

    @field_validator("details", mode="before")
    @classmethod
    def decode_details(cls, value):
        if isinstance(value, str):
            return json.loads(value)
        return value
