import logging
from typing import Any, Dict, List, Optional

import httpx

from models.calendar import Note
from models.session import SessionContext
from utils.constants import API_BASE_URL, REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Base exception for backend integration errors"""

    pass


class BackendAPIError(BackendError):
    """Raised when the backend answers with a non-2xx status"""

    def __init__(self, status_code: int, message: Optional[str] = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message or f"Backend responded with {status_code}")


class BackendUnavailableError(BackendError):
    """Raised when the request never produced a response"""

    pass


def unwrap_list(data: Any, *keys: str) -> List[Any]:
    """Accept a bare JSON array or an object wrapping one under any of `keys`"""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return value
    return []


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return response.text or None
    if isinstance(data, dict):
        message = data.get("message") or data.get("detail")
        if isinstance(message, str):
            return message
        if isinstance(message, dict) and isinstance(message.get("message"), str):
            return message["message"]
    return None


class BackendClient:
    """Async client for the MeetUpBuddy JSON/HTTP backend"""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        session: Optional[SessionContext] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = session.auth_headers() if session else {}
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed before a response: {e}")
            raise BackendUnavailableError(str(e)) from e

        if response.is_error:
            message = _error_message(response)
            logger.info(f"{method} {path} -> {response.status_code}: {message}")
            raise BackendAPIError(response.status_code, message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # Customers & auth

    async def register_customer(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/customer", json=payload) or {}

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        return (
            await self._request(
                "POST", "/auth/signin", json={"email": email, "password": password}
            )
            or {}
        )

    async def get_customer(
        self, session: SessionContext, customer_id: str
    ) -> Dict[str, Any]:
        return (
            await self._request("GET", f"/customer/{customer_id}", session=session) or {}
        )

    # Notes (calendar events)

    async def list_notes(
        self, customer_id: str, session: Optional[SessionContext] = None
    ) -> List[Note]:
        data = await self._request(
            "GET", f"/customer/{customer_id}/notes", session=session
        )
        return [Note.model_validate(n) for n in unwrap_list(data, "notes") if isinstance(n, dict)]

    async def create_note(
        self,
        session: Optional[SessionContext],
        *,
        title: str,
        description: str,
        date: str,
        customer_id: str,
    ) -> Note:
        data = await self._request(
            "POST",
            "/note",
            session=session,
            json={
                "title": title,
                "description": description,
                "date": date,
                "customerId": customer_id,
            },
        )
        if isinstance(data, dict):
            note = data.get("note") if isinstance(data.get("note"), dict) else data
            return Note.model_validate(note)
        return Note(title=title, description=description, date=date, customer_id=customer_id)

    async def delete_note(
        self, note_id: str, session: Optional[SessionContext] = None
    ) -> None:
        await self._request("DELETE", f"/note/{note_id}", session=session)

    # Friendship

    async def search_user(
        self, session: SessionContext, user_id: str, email: str
    ) -> Dict[str, Any]:
        data = await self._request(
            "POST", f"/friendship/search/{user_id}", session=session, json={"email": email}
        )
        if not isinstance(data, dict):
            return {}
        user = data.get("user")
        return user if isinstance(user, dict) else data

    async def send_friend_request(
        self, session: SessionContext, user_id: str, email: str
    ) -> Any:
        return await self._request(
            "POST", f"/friendship/request/{user_id}", session=session, json={"email": email}
        )

    async def respond_friend_request(
        self, session: SessionContext, user_id: str, request_id: str, accept: bool
    ) -> Any:
        return await self._request(
            "POST",
            f"/friendship/respond/{user_id}",
            session=session,
            json={"requestId": request_id, "accept": accept},
        )

    async def list_friends(self, session: SessionContext, user_id: str) -> List[Any]:
        data = await self._request("GET", f"/friendship/friends/{user_id}", session=session)
        return unwrap_list(data, "friends")

    async def list_friend_requests(
        self, session: SessionContext, user_id: str, direction: str
    ) -> List[Any]:
        if direction not in ("received", "sent"):
            raise ValueError(f"Unknown request direction: {direction}")
        data = await self._request(
            "GET", f"/friendship/requests/{user_id}/{direction}", session=session
        )
        return unwrap_list(data, "requests")

    # Event requests

    async def request_event(
        self,
        session: SessionContext,
        user_id: str,
        *,
        email: str,
        title: str,
        description: str,
        date: str,
    ) -> Dict[str, Any]:
        data = await self._request(
            "POST",
            f"/friendship/request-event/{user_id}",
            session=session,
            json={"email": email, "title": title, "description": description, "date": date},
        )
        return data if isinstance(data, dict) else {}

    async def respond_event_request(
        self, session: SessionContext, user_id: str, request_id: str, accept: bool
    ) -> Any:
        return await self._request(
            "POST",
            f"/friendship/respond-event/{user_id}",
            session=session,
            json={"requestId": request_id, "accept": accept},
        )

    async def list_event_requests(
        self, session: SessionContext, user_id: str
    ) -> List[Any]:
        data = await self._request(
            "GET", f"/friendship/event-requests/{user_id}/received", session=session
        )
        return unwrap_list(data, "requests", "eventRequests")
