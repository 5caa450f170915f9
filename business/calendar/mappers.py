from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from models.calendar import CalendarEvent, Note, as_utc
from utils.constants import DEFAULT_EVENT_DURATION_MINUTES

logger = logging.getLogger(__name__)


def parse_note_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def format_note_date(value: datetime) -> str:
    # Same shape as JavaScript's Date.toISOString()
    return as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def note_to_event(note: Note) -> Optional[CalendarEvent]:
    start = parse_note_date(note.date)
    if start is None:
        logger.debug("Skipping note %s with unusable date %r", note.id, note.date)
        return None
    return CalendarEvent(
        id=note.id,
        title=note.title or "Event",
        description=note.description or "",
        start=start,
        end=start + timedelta(minutes=DEFAULT_EVENT_DURATION_MINUTES),
    )


def notes_to_events(notes: Iterable[Note]) -> List[CalendarEvent]:
    events = []
    for note in notes:
        event = note_to_event(note)
        if event is not None:
            events.append(event)
    return events


def same_slot(note: Note, title: str, when: datetime) -> bool:
    """True when `note` already represents an event with this title at this time"""
    start = parse_note_date(note.date)
    return (
        start is not None
        and (note.title or "") == title
        and as_utc(start) == as_utc(when)
    )
