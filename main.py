# main.py - Composition root for the MeetUpBuddy coordination core
import logging
import sys
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx

from business import account
from business.calendar.service import CalendarReconciler
from business.friendship import FriendshipDirectory
from business.proposals import EventProposalCoordinator, Recipient
from integrations.availability import AvailabilityOracle
from integrations.backend import BackendClient
from models.calendar import CalendarEvent, DeleteOutcome
from models.event_request import EventData, FanOutResult, RespondOutcome
from models.friend import FriendLists, FriendRequest
from models.session import SessionContext
from models.user import RegisterRequest, User
from utils.constants import API_BASE_URL, LOG_LEVEL
from utils.events import FRIENDS_CHANGED, EventBus

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
    )


class MeetUpBuddy:
    """One signed-in user's view of friends, proposals and the calendar.

    Reload triggers travel over an EventBus instead of ambient globals:
    friend mutations refresh the friend lists, accepted proposals refresh
    the calendar.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        oracle: Optional[AvailabilityOracle] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        initial_events: Iterable[CalendarEvent] = (),
        **coordinator_options: Any,
    ) -> None:
        self.session = SessionContext()
        self.bus = EventBus()
        self.client = BackendClient(base_url, transport=transport)
        self.friends = FriendshipDirectory(self.client, bus=self.bus)
        self.proposals = EventProposalCoordinator(
            self.client, self.friends, oracle=oracle, bus=self.bus, **coordinator_options
        )
        self.calendar = CalendarReconciler(self.client, bus=self.bus, initial=initial_events)
        self.bus.subscribe(FRIENDS_CHANGED, self._reload_friends)

    async def __aenter__(self) -> "MeetUpBuddy":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def _reload_friends(self, payload: Any) -> None:
        if self.session.user_id:
            await self.friends.reload(self.session)

    # Account

    async def register(self, payload: Union[RegisterRequest, Dict[str, Any]]) -> Optional[str]:
        customer_id = await account.register(self.client, payload)
        if customer_id:
            self.session = SessionContext(token=self.session.token, user_id=customer_id)
        return customer_id

    async def sign_in(self, email: str, password: str) -> SessionContext:
        self.session = await account.sign_in(self.client, email, password)
        self.friends.invalidate()
        await self.calendar.load(self.session)
        return self.session

    def sign_out(self) -> None:
        self.session = SessionContext()
        self.friends.invalidate()

    async def profile(self) -> User:
        return await account.get_profile(self.client, self.session)

    # Friends

    async def search(self, email: str) -> User:
        return await self.friends.search(self.session, email)

    async def add_friend(self, email: str) -> FriendRequest:
        return await self.friends.send_request(self.session, email)

    async def answer_friend_request(self, request_id: str, accept: bool) -> None:
        await self.friends.respond(self.session, request_id, accept)

    async def friend_lists(self) -> FriendLists:
        return await self.friends.reload(self.session)

    # Hangouts

    async def invite(
        self, recipients: Iterable[Recipient], event_data: Union[EventData, Dict[str, Any]]
    ) -> FanOutResult:
        return await self.proposals.propose(self.session, recipients, event_data)

    async def answer_invite(self, request_id: str, accept: bool) -> RespondOutcome:
        return await self.proposals.respond_to_proposal(self.session, request_id, accept)

    # Calendar

    @property
    def events(self) -> List[CalendarEvent]:
        return self.calendar.events

    async def add_event(self, event: CalendarEvent) -> CalendarEvent:
        return await self.calendar.add(self.session, event)

    async def delete_event(self, event: CalendarEvent) -> DeleteOutcome:
        return await self.calendar.delete(self.session, event)
