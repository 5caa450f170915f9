import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from business.errors import (
    AlreadyFriends,
    AlreadyResolved,
    RequestAlreadyPending,
    RequestNotFound,
    UserNotFound,
    ValidationError,
    from_backend_error,
)
from integrations.backend import BackendClient, BackendError
from models.friend import FriendLists, FriendRequest
from models.session import SessionContext
from models.user import User
from utils.events import FRIENDS_CHANGED, EventBus
from utils.session import require_user

logger = logging.getLogger(__name__)


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _parse_users(rows: List[Any]) -> List[User]:
    users = []
    for row in rows:
        try:
            users.append(User.model_validate(row))
        except PydanticValidationError:
            logger.warning("Skipping malformed friend record: %r", row)
    return users


def _parse_requests(rows: List[Any]) -> List[FriendRequest]:
    requests = []
    for row in rows:
        try:
            requests.append(FriendRequest.model_validate(row))
        except PydanticValidationError:
            logger.warning("Skipping malformed friend request: %r", row)
    return requests


def _conflict_for(message: Optional[str]) -> type:
    if "already friends" in (message or "").lower():
        return AlreadyFriends
    return RequestAlreadyPending


class FriendshipDirectory:
    """Friend graph and friend requests of the signed-in user.

    Lists are cached per user and dropped after every mutation; callers
    trigger `reload` (usually through the FRIENDS_CHANGED topic) before
    trusting them again.
    """

    def __init__(self, client: BackendClient, *, bus: Optional[EventBus] = None) -> None:
        self.client = client
        self.bus = bus
        self._cache: Dict[str, FriendLists] = {}

    def cached(self, user_id: str) -> Optional[FriendLists]:
        return self._cache.get(user_id)

    def invalidate(self, user_id: Optional[str] = None) -> None:
        if user_id is None:
            self._cache.clear()
        else:
            self._cache.pop(user_id, None)

    async def reload(self, session: SessionContext) -> FriendLists:
        user_id = require_user(session)
        try:
            friends, received, sent = await asyncio.gather(
                self.client.list_friends(session, user_id),
                self.client.list_friend_requests(session, user_id, "received"),
                self.client.list_friend_requests(session, user_id, "sent"),
            )
        except BackendError as e:
            raise from_backend_error(e) from e

        lists = FriendLists(
            friends=_parse_users(friends),
            received=_parse_requests(received),
            sent=_parse_requests(sent),
        )
        self._cache[user_id] = lists
        return lists

    async def _lists(self, session: SessionContext, refresh: bool) -> FriendLists:
        user_id = require_user(session)
        cached = self._cache.get(user_id)
        if cached is not None and not refresh:
            return cached
        return await self.reload(session)

    async def list_friends(self, session: SessionContext, refresh: bool = False) -> List[User]:
        return list((await self._lists(session, refresh)).friends)

    async def list_received(
        self, session: SessionContext, refresh: bool = False
    ) -> List[FriendRequest]:
        return list((await self._lists(session, refresh)).received)

    async def list_sent(
        self, session: SessionContext, refresh: bool = False
    ) -> List[FriendRequest]:
        return list((await self._lists(session, refresh)).sent)

    async def search(self, session: SessionContext, email: str) -> User:
        user_id = require_user(session)
        target_email = _normalize_email(email)
        if not target_email:
            raise ValidationError("Enter an email to search for.")

        try:
            data = await self.client.search_user(session, user_id, target_email)
        except BackendError as e:
            raise from_backend_error(e, not_found=UserNotFound) from e

        if not data.get("id"):
            raise UserNotFound("No user found for that email.")
        user = User.model_validate(data)
        if not user.email:
            user = user.model_copy(update={"email": target_email})
        return user

    async def send_request(self, session: SessionContext, to_email: str) -> FriendRequest:
        user_id = require_user(session)
        target = await self.search(session, to_email)
        if target.id == user_id:
            raise ValidationError("Cannot add yourself as a friend.")

        lists = await self.reload(session)
        if any(friend.id == target.id for friend in lists.friends):
            raise AlreadyFriends()
        for request in lists.sent + lists.received:
            if not request.is_resolved and request.other_party(user_id) == target.id:
                raise RequestAlreadyPending()

        try:
            data = await self.client.send_friend_request(session, user_id, target.email)
        except BackendError as e:
            message = getattr(e, "message", None)
            raise from_backend_error(
                e, not_found=UserNotFound, conflict=_conflict_for(message)
            ) from e
        finally:
            self.invalidate(user_id)

        created = self._created_request(data, user_id, target)
        if created is None:
            # Response carried no request body; read it back from the sent list
            sent = await self.list_sent(session, refresh=True)
            created = next(
                (r for r in sent if r.to_user_id == target.id and not r.is_resolved),
                None,
            )
            self.invalidate(user_id)
        if created is None:
            # Id unknown until the next reload
            created = FriendRequest(id="", from_user_id=user_id, to_user_id=target.id, user=target)

        logger.info(f"Friend request sent from {user_id} to {target.id}")
        await self._publish(session)
        return created

    def _created_request(
        self, data: Any, user_id: str, target: User
    ) -> Optional[FriendRequest]:
        if not isinstance(data, dict):
            return None
        body = data.get("request") if isinstance(data.get("request"), dict) else data
        if not body.get("id"):
            return None
        body = {"fromUserId": user_id, "toUserId": target.id, **body}
        try:
            return FriendRequest.model_validate(body)
        except PydanticValidationError:
            return None

    async def respond(self, session: SessionContext, request_id: str, accept: bool) -> None:
        user_id = require_user(session)
        received = await self.list_received(session, refresh=True)
        request = next((r for r in received if r.id == str(request_id)), None)
        if request is None:
            raise RequestNotFound("Friend request not found.")
        if request.is_resolved:
            raise AlreadyResolved(f"Friend request was already {request.status.value}.")

        try:
            await self.client.respond_friend_request(session, user_id, request.id, accept)
        except BackendError as e:
            raise from_backend_error(
                e, not_found=RequestNotFound, conflict=AlreadyResolved
            ) from e
        finally:
            self.invalidate(user_id)

        logger.info(
            f"Friend request {request.id} {'accepted' if accept else 'declined'} by {user_id}"
        )
        await self._publish(session)

    async def _publish(self, session: SessionContext) -> None:
        if self.bus:
            await self.bus.publish(FRIENDS_CHANGED, {"session": session})
