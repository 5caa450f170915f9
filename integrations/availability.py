import logging
from datetime import datetime, timedelta
from typing import List, Protocol

from business.calendar.mappers import parse_note_date
from integrations.backend import BackendClient
from models.calendar import as_utc
from models.event_request import Availability
from models.session import SessionContext
from models.user import User
from utils.constants import AVAILABILITY_SEARCH_DAYS, DEFAULT_EVENT_DURATION_MINUTES

logger = logging.getLogger(__name__)


class AvailabilityOracle(Protocol):
    """Reports whether `recipient` is free at `when`. Advisory only."""

    async def check(
        self, session: SessionContext, recipient: User, when: datetime
    ) -> Availability: ...


class CalendarAvailabilityOracle:
    """Availability derived from the recipient's own notes.

    A slot is busy when an existing note overlaps it. When busy, the same time
    on the next free day within AVAILABILITY_SEARCH_DAYS is suggested.
    """

    def __init__(
        self,
        client: BackendClient,
        *,
        slot_minutes: int = DEFAULT_EVENT_DURATION_MINUTES,
        search_days: int = AVAILABILITY_SEARCH_DAYS,
    ) -> None:
        self.client = client
        self.slot = timedelta(minutes=slot_minutes)
        self.search_days = search_days

    async def check(
        self, session: SessionContext, recipient: User, when: datetime
    ) -> Availability:
        notes = await self.client.list_notes(recipient.id, session=session)
        busy: List[datetime] = []
        for note in notes:
            start = parse_note_date(note.date)
            if start is not None:
                busy.append(as_utc(start))

        if self._is_free(busy, as_utc(when)):
            return Availability(is_available=True)

        for offset in range(1, self.search_days + 1):
            candidate = when + timedelta(days=offset)
            if self._is_free(busy, as_utc(candidate)):
                return Availability(
                    is_available=False,
                    suggested_date=candidate,
                    message=f"{recipient.label} is busy then",
                )

        logger.info(
            "No free slot for %s in the next %d days", recipient.id, self.search_days
        )
        return Availability(is_available=False, message=f"{recipient.label} is busy then")

    def _is_free(self, busy: List[datetime], start: datetime) -> bool:
        end = start + self.slot
        return all(not (b < end and start < b + self.slot) for b in busy)
