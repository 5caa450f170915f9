from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.calendar import CalendarEvent
from models.proposal import Proposal


class EventData(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    date: datetime

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> Any:
        return "" if value is None else value


class EventProposal(Proposal):
    event_data: EventData = Field(alias="eventData")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _fold_flat_event_fields(cls, data: Any) -> Any:
        # Some listings return title/description/date at the top level
        if isinstance(data, dict) and "eventData" not in data and "event_data" not in data:
            if "title" in data or "date" in data:
                data = dict(data)
                data["eventData"] = {
                    "title": data.pop("title", None),
                    "description": data.pop("description", None),
                    "date": data.pop("date", None),
                }
        return data


class Availability(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_available: bool = Field(default=True, alias="isAvailable")
    suggested_date: Optional[datetime] = Field(default=None, alias="suggestedDate")
    message: Optional[str] = None


class FailureReason(str, Enum):
    no_email_on_file = "NoEmailOnFile"
    user_not_found = "UserNotFound"
    not_available = "NotAvailable"
    request_failed = "RequestFailed"


class RecipientError(BaseModel):
    recipient: str
    reason: FailureReason
    status_code: Optional[int] = None
    message: Optional[str] = None


class RecipientWarning(BaseModel):
    recipient: str
    reason: FailureReason = FailureReason.not_available
    suggested_date: Optional[datetime] = None
    message: Optional[str] = None


class ProposalReceipt(BaseModel):
    recipient: str
    proposal: Optional[EventProposal] = None
    availability: Availability = Availability()
    warning: Optional[RecipientWarning] = None


class FanOutResult(BaseModel):
    success_count: int = 0
    failed_count: int = 0
    errors: List[RecipientError] = []
    warnings: List[RecipientWarning] = []
    proposals: List[EventProposal] = []


class RespondOutcome(BaseModel):
    proposal: EventProposal
    events: List[CalendarEvent] = []
    inconsistency: Optional[str] = None
