from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from business.calendar import mappers
from business.calendar.reconcile import apply_remote_batch, merge, remove_matching
from integrations.backend import BackendClient, BackendError
from models.calendar import CalendarEvent, DeleteOutcome
from models.session import SessionContext
from utils.events import CALENDAR_CHANGED, EventBus

logger = logging.getLogger(__name__)


class CalendarReconciler:
    """Owns the displayed event set: local drafts plus backend-confirmed events.

    Mutations are optimistic. A backend delete that fails after the entry was
    already removed locally is not rolled back; the view and the backend stay
    divergent until the next `load`.
    """

    def __init__(
        self,
        client: BackendClient,
        *,
        bus: Optional[EventBus] = None,
        initial: Iterable[CalendarEvent] = (),
    ) -> None:
        self.client = client
        self.bus = bus
        self._events: List[CalendarEvent] = merge(list(initial), [])
        if bus is not None:
            bus.subscribe(CALENDAR_CHANGED, self.handle_calendar_changed)

    @property
    def events(self) -> List[CalendarEvent]:
        return list(self._events)

    def replace_remote(self, remote: Iterable[CalendarEvent]) -> List[CalendarEvent]:
        self._events = apply_remote_batch(self._events, list(remote))
        return self.events

    async def load(self, session: SessionContext) -> List[CalendarEvent]:
        """Refresh confirmed events from the backend, keeping drafts."""
        if not session.user_id:
            return self.events

        try:
            notes = await self.client.list_notes(session.user_id, session=session)
        except BackendError as e:
            logger.warning(f"Could not load notes for {session.user_id}: {e}")
            return self.events

        remote = mappers.notes_to_events(notes)
        logger.info("Loaded %d confirmed events for %s", len(remote), session.user_id)
        return self.replace_remote(remote)

    async def handle_calendar_changed(self, payload: Any) -> None:
        session = payload.get("session") if isinstance(payload, dict) else None
        if isinstance(session, SessionContext):
            await self.load(session)

    async def add(self, session: SessionContext, event: CalendarEvent) -> CalendarEvent:
        """Show `event` immediately and best-effort persist it as a note."""
        if event.id:
            # Already confirmed; replaces any displayed copy with the same id
            self._events = merge(self._events, [event])
            return event

        self._events.append(event)
        if not session.user_id:
            return event

        try:
            note = await self.client.create_note(
                session,
                title=event.title,
                description=event.description,
                date=mappers.format_note_date(event.start),
                customer_id=session.user_id,
            )
        except BackendError as e:
            logger.warning(f"Draft '{event.title}' kept local only: {e}")
            return event

        if not note.id:
            return event

        confirmed = event.model_copy(update={"id": note.id})
        self._events = [
            confirmed if candidate is event else candidate for candidate in self._events
        ]
        self._events = merge(self._events, [])
        return confirmed

    async def delete(
        self, session: Optional[SessionContext], target: CalendarEvent
    ) -> DeleteOutcome:
        before = len(self._events)
        self._events = remove_matching(self._events, target)
        removed = before - len(self._events)

        if not target.id:
            return DeleteOutcome(removed=removed, remote_attempted=False)

        try:
            await self.client.delete_note(target.id, session=session)
        except BackendError as e:
            # Known gap: the entry is already gone locally and is not restored
            logger.warning(
                f"Backend delete of note {target.id} failed; view diverges until reload: {e}"
            )
            return DeleteOutcome(removed=removed, remote_attempted=True, remote_error=str(e))

        return DeleteOutcome(removed=removed, remote_attempted=True)
