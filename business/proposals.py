from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from business.calendar.mappers import format_note_date, same_slot
from business.errors import (
    AlreadyResolved,
    MeetupError,
    NetworkError,
    NoEmailOnFile,
    NotAvailable,
    RequestFailed,
    RequestNotFound,
    Unauthenticated,
    UserNotFound,
    ValidationError,
    from_backend_error,
)
from business.friendship import FriendshipDirectory
from integrations.availability import AvailabilityOracle
from integrations.backend import BackendAPIError, BackendClient, BackendError
from models.calendar import CalendarEvent, Note
from models.event_request import (
    Availability,
    EventData,
    EventProposal,
    FailureReason,
    FanOutResult,
    ProposalReceipt,
    RecipientError,
    RecipientWarning,
    RespondOutcome,
)
from models.proposal import ProposalStatus
from models.session import SessionContext
from models.user import User
from utils.constants import (
    DEFAULT_EVENT_DURATION_MINUTES,
    EVENT_MATERIALIZE_BACKOFF_SECONDS,
    EVENT_MATERIALIZE_MAX_ATTEMPTS,
)
from utils.events import CALENDAR_CHANGED, PROPOSALS_CHANGED, EventBus
from utils.session import require_user

logger = logging.getLogger(__name__)

Recipient = Union[str, User]


@dataclass
class _Materialized:
    participant_id: str
    note: Note
    created: bool


def _validate_event_data(event_data: Union[EventData, Dict[str, Any]]) -> EventData:
    if isinstance(event_data, EventData):
        return event_data
    try:
        return EventData.model_validate(event_data)
    except PydanticValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ValidationError(
            f"Missing or invalid fields: {', '.join(missing)}" if missing else None
        ) from e


def _recipient_label(recipient: Recipient) -> str:
    if isinstance(recipient, User):
        return recipient.label
    return recipient


def _recipient_email(recipient: Recipient) -> str:
    email = recipient.email if isinstance(recipient, User) else recipient
    return (email or "").strip().lower()


def _dedupe_recipients(recipients: Iterable[Recipient]) -> List[Recipient]:
    seen = set()
    unique: List[Recipient] = []
    for recipient in recipients:
        email = _recipient_email(recipient)
        if email:
            if email in seen:
                continue
            seen.add(email)
        unique.append(recipient)
    return unique


def _failure_for(recipient: str, error: MeetupError) -> RecipientError:
    if isinstance(error, NoEmailOnFile):
        reason = FailureReason.no_email_on_file
    elif isinstance(error, UserNotFound):
        reason = FailureReason.user_not_found
    else:
        reason = FailureReason.request_failed

    status_code = None
    if isinstance(error, RequestFailed):
        status_code = error.status_code
    elif isinstance(error, Unauthenticated):
        status_code = 401
    return RecipientError(
        recipient=recipient, reason=reason, status_code=status_code, message=error.message
    )


class EventProposalCoordinator:
    """Creates hangout proposals and resolves the ones addressed to the user.

    Inviting several friends fans out into independent proposals, one per
    recipient, sent concurrently. Availability is advisory: a busy recipient
    still gets the proposal and the sender gets a warning.
    """

    def __init__(
        self,
        client: BackendClient,
        directory: FriendshipDirectory,
        *,
        oracle: Optional[AvailabilityOracle] = None,
        bus: Optional[EventBus] = None,
        max_attempts: int = EVENT_MATERIALIZE_MAX_ATTEMPTS,
        backoff_seconds: float = EVENT_MATERIALIZE_BACKOFF_SECONDS,
    ) -> None:
        self.client = client
        self.directory = directory
        self.oracle = oracle
        self.bus = bus
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

    async def propose(
        self,
        session: SessionContext,
        recipients: Iterable[Recipient],
        event_data: Union[EventData, Dict[str, Any]],
    ) -> FanOutResult:
        user_id = require_user(session)
        data = _validate_event_data(event_data)
        targets = _dedupe_recipients(recipients)
        if not targets:
            raise ValidationError("Pick at least one friend to invite.")

        outcomes = await asyncio.gather(
            *(self._attempt(session, user_id, target, data) for target in targets),
            return_exceptions=True,
        )

        result = FanOutResult()
        for target, outcome in zip(targets, outcomes):
            label = _recipient_label(target)
            if isinstance(outcome, RecipientError):
                result.errors.append(outcome)
            elif isinstance(outcome, ProposalReceipt):
                result.success_count += 1
                if outcome.proposal is not None:
                    result.proposals.append(outcome.proposal)
                if outcome.warning is not None:
                    result.warnings.append(outcome.warning)
            elif isinstance(outcome, Exception):
                logger.error(f"Unexpected failure proposing to {label}: {outcome!r}")
                result.errors.append(
                    RecipientError(
                        recipient=label,
                        reason=FailureReason.request_failed,
                        message=str(outcome),
                    )
                )
            else:
                raise outcome
        result.failed_count = len(result.errors)

        logger.info(
            json.dumps(
                {
                    "event": "proposals.fan_out",
                    "from_user_id": user_id,
                    "title": data.title,
                    "recipients": len(targets),
                    "succeeded": result.success_count,
                    "failed": result.failed_count,
                    "warnings": len(result.warnings),
                }
            )
        )
        if result.success_count and self.bus:
            await self.bus.publish(PROPOSALS_CHANGED, {"session": session})
        return result

    async def propose_to(
        self,
        session: SessionContext,
        recipient: Recipient,
        event_data: Union[EventData, Dict[str, Any]],
    ) -> ProposalReceipt:
        """Direct 1:1 proposal; failures raise instead of being collected."""
        user_id = require_user(session)
        data = _validate_event_data(event_data)
        receipt = await self._send(session, user_id, recipient, data)
        if self.bus:
            await self.bus.publish(PROPOSALS_CHANGED, {"session": session})
        return receipt

    async def _attempt(
        self, session: SessionContext, user_id: str, recipient: Recipient, data: EventData
    ) -> Union[ProposalReceipt, RecipientError]:
        try:
            return await self._send(session, user_id, recipient, data)
        except MeetupError as e:
            logger.info(f"Proposal to {_recipient_label(recipient)} failed: {e.message}")
            return _failure_for(_recipient_label(recipient), e)

    async def _send(
        self, session: SessionContext, user_id: str, recipient: Recipient, data: EventData
    ) -> ProposalReceipt:
        email = _recipient_email(recipient)
        if not email:
            raise NoEmailOnFile(f"{_recipient_label(recipient)} has no email on file.")

        target = await self.directory.search(session, email)

        availability: Optional[Availability] = None
        if self.oracle is not None:
            try:
                availability = await self.oracle.check(session, target, data.date)
            except Exception as e:
                logger.warning(f"Availability check for {email} failed, sending anyway: {e}")

        try:
            response = await self.client.request_event(
                session,
                user_id,
                email=email,
                title=data.title,
                description=data.description,
                date=format_note_date(data.date),
            )
        except BackendError as e:
            raise from_backend_error(e, not_found=UserNotFound) from e

        if availability is None:
            availability = self._availability_from(response)

        warning = None
        if not availability.is_available:
            warning = RecipientWarning(
                recipient=email,
                suggested_date=availability.suggested_date or data.date + timedelta(days=1),
                message=availability.message or NotAvailable.default_message,
            )

        return ProposalReceipt(
            recipient=email,
            proposal=self._proposal_from(response, user_id, target, data),
            availability=availability,
            warning=warning,
        )

    def _availability_from(self, response: Dict[str, Any]) -> Availability:
        raw = response.get("availability")
        if not isinstance(raw, dict):
            return Availability()
        try:
            return Availability.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Ignoring malformed availability block: %r", raw)
            return Availability()

    def _proposal_from(
        self, response: Dict[str, Any], user_id: str, target: User, data: EventData
    ) -> Optional[EventProposal]:
        body: Any = response
        for key in ("request", "eventRequest"):
            if isinstance(response.get(key), dict):
                body = response[key]
                break
        if not body.get("id"):
            return None
        body = {
            "fromUserId": user_id,
            "toUserId": target.id,
            "eventData": data.model_dump(),
            **{k: v for k, v in body.items() if k != "availability"},
        }
        try:
            return EventProposal.model_validate(body)
        except PydanticValidationError:
            logger.warning("Could not read the created proposal: %r", body)
            return None

    async def list_received(self, session: SessionContext) -> List[EventProposal]:
        user_id = require_user(session)
        try:
            rows = await self.client.list_event_requests(session, user_id)
        except BackendError as e:
            raise from_backend_error(e) from e

        proposals = []
        for row in rows:
            try:
                proposals.append(EventProposal.model_validate(row))
            except PydanticValidationError:
                logger.warning("Skipping malformed event request: %r", row)
        return proposals

    async def respond_to_proposal(
        self, session: SessionContext, request_id: str, accept: bool
    ) -> RespondOutcome:
        user_id = require_user(session)
        received = await self.list_received(session)
        proposal = next((p for p in received if p.id == str(request_id)), None)
        if proposal is None:
            raise RequestNotFound("Event request not found.")
        if proposal.is_resolved:
            raise AlreadyResolved(f"Event request was already {proposal.status.value}.")

        known_notes = await self._snapshot_note_ids(session, proposal) if accept else {}

        try:
            await self.client.respond_event_request(session, user_id, proposal.id, accept)
        except BackendError as e:
            raise from_backend_error(
                e, not_found=RequestNotFound, conflict=AlreadyResolved
            ) from e

        status = ProposalStatus.accepted if accept else ProposalStatus.declined
        proposal = proposal.model_copy(update={"status": status})
        logger.info(f"Event request {proposal.id} {status.value} by {user_id}")

        if not accept:
            await self._publish(PROPOSALS_CHANGED, session)
            return RespondOutcome(proposal=proposal)

        events, inconsistency = await self._materialize(session, proposal, known_notes)
        await self._publish(PROPOSALS_CHANGED, session)
        await self._publish(CALENDAR_CHANGED, session)
        return RespondOutcome(proposal=proposal, events=events, inconsistency=inconsistency)

    async def _snapshot_note_ids(
        self, session: SessionContext, proposal: EventProposal
    ) -> Dict[str, Optional[Set[str]]]:
        """Note ids each participant had before answering.

        None means the notes could not be read, so nothing will be reused.
        """
        participants = [proposal.from_user_id, proposal.to_user_id]
        results = await asyncio.gather(
            *(self.client.list_notes(pid, session=session) for pid in participants),
            return_exceptions=True,
        )
        snapshot: Dict[str, Optional[Set[str]]] = {}
        for pid, result in zip(participants, results):
            if isinstance(result, BackendError):
                logger.warning(f"Could not read notes of {pid} before accepting: {result}")
                snapshot[pid] = None
            elif isinstance(result, BaseException):
                raise result
            else:
                snapshot[pid] = {n.id for n in result if n.id}
        return snapshot

    async def _materialize(
        self,
        session: SessionContext,
        proposal: EventProposal,
        known_notes: Dict[str, Optional[Set[str]]],
    ) -> Tuple[List[CalendarEvent], Optional[str]]:
        """One new event for the sender and one for the recipient, or none."""
        participants = [proposal.from_user_id, proposal.to_user_id]
        results = await asyncio.gather(
            *(
                self._ensure_event(session, pid, proposal.event_data, known_notes.get(pid))
                for pid in participants
            ),
            return_exceptions=True,
        )

        made = [r for r in results if isinstance(r, _Materialized)]
        failed = [pid for pid, r in zip(participants, results) if not isinstance(r, _Materialized)]
        if not failed:
            data = proposal.event_data
            end = data.date + timedelta(minutes=DEFAULT_EVENT_DURATION_MINUTES)
            events = [
                CalendarEvent(
                    id=m.note.id,
                    title=data.title,
                    description=data.description,
                    start=data.date,
                    end=end,
                )
                for m in made
            ]
            return events, None

        for m in made:
            if m.created and m.note.id:
                try:
                    await self.client.delete_note(m.note.id, session=session)
                except BackendError as e:
                    logger.error(
                        f"Could not remove one-sided event {m.note.id} for {m.participant_id}: {e}"
                    )

        inconsistency = (
            f"Event request {proposal.id} was accepted but its calendar events "
            f"could not be created for: {', '.join(failed)}"
        )
        logger.error(inconsistency)
        return [], inconsistency

    async def _ensure_event(
        self,
        session: SessionContext,
        participant_id: str,
        data: EventData,
        known_ids: Optional[Set[str]],
    ) -> _Materialized:
        """Create the participant's event unless one appeared since `known_ids`.

        Notes that existed before the accept belong to other proposals, so only
        notes created after the snapshot (by the backend or by an earlier
        attempt whose response was lost) are reused.
        """
        last_error: Optional[BackendError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                notes: List[Note] = []
                if known_ids is not None:
                    try:
                        notes = await self.client.list_notes(participant_id, session=session)
                    except BackendAPIError as e:
                        logger.debug("Existing notes for %s unreadable: %s", participant_id, e)
                existing = next(
                    (
                        n
                        for n in notes
                        if n.id not in known_ids and same_slot(n, data.title, data.date)
                    ),
                    None,
                )
                if existing is not None:
                    return _Materialized(participant_id, existing, created=False)

                note = await self.client.create_note(
                    session,
                    title=data.title,
                    description=data.description,
                    date=format_note_date(data.date),
                    customer_id=participant_id,
                )
                return _Materialized(participant_id, note, created=True)
            except BackendError as e:
                last_error = e
                logger.warning(
                    f"Creating event for {participant_id} failed "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        raise from_backend_error(last_error) if last_error else NetworkError()

    async def _publish(self, topic: str, session: SessionContext) -> None:
        if self.bus:
            await self.bus.publish(topic, {"session": session})
