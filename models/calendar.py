from __future__ import annotations

from datetime import date, datetime, time, timezone, tzinfo
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.constants import (
    DEFAULT_EVENT_COLOR,
    DEFAULT_EVENT_TEXT_COLOR,
    DRAFT_END_HOUR,
    DRAFT_START_HOUR,
)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so local drafts and backend dates compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CalendarEvent(BaseModel):
    """A displayed calendar entry.

    `id` is set only once the backend has confirmed the entry; id-less entries
    are local drafts and are identified by (title, description, start, end).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: str
    description: str = ""
    start: datetime
    end: datetime
    color: str = DEFAULT_EVENT_COLOR
    text_color: str = Field(default=DEFAULT_EVENT_TEXT_COLOR, alias="textColor")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        # An empty id is the same as no id
        return value or None

    @property
    def structural_key(self) -> Tuple[str, str, datetime, datetime]:
        return (self.title, self.description, as_utc(self.start), as_utc(self.end))

    @classmethod
    def draft(
        cls, title: str, description: str, day: date, tz: tzinfo = timezone.utc
    ) -> CalendarEvent:
        """Draft spanning the default slot on `day`, on the wall clock of `tz`."""
        return cls(
            title=title,
            description=description,
            start=datetime.combine(day, time(DRAFT_START_HOUR, tzinfo=tz)),
            end=datetime.combine(day, time(DRAFT_END_HOUR, tzinfo=tz)),
        )


class Note(BaseModel):
    """Backend representation of a calendar event."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    customer_id: Optional[str] = Field(default=None, alias="customerId")

    @field_validator("id", "customer_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class DeleteOutcome(BaseModel):
    removed: int
    remote_attempted: bool
    remote_error: Optional[str] = None
