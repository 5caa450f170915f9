import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from business.errors import UserNotFound, ValidationError, from_backend_error
from integrations.backend import BackendClient, BackendError
from models.session import SessionContext
from models.user import RegisterRequest, User
from utils.session import require_user

logger = logging.getLogger(__name__)


def _first_str(*values: Any) -> Optional[str]:
    for value in values:
        if value is not None and value != "":
            return str(value)
    return None


async def register(
    client: BackendClient, payload: Union[RegisterRequest, Dict[str, Any]]
) -> Optional[str]:
    """
    Create a customer account.

    Args:
        client: Backend client
        payload: Registration form values

    Returns:
        The new customer id, when the backend reports one
    """
    try:
        request = (
            payload
            if isinstance(payload, RegisterRequest)
            else RegisterRequest.model_validate(payload)
        )
    except PydanticValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ValidationError(f"Please check: {', '.join(fields)}") from e

    try:
        result = await client.register_customer(request.model_dump(by_alias=True, mode="json"))
    except BackendError as e:
        raise from_backend_error(e) from e

    customer_id = _first_str(result.get("id"))
    logger.info(f"Registered customer {request.email} with ID: {customer_id}")
    return customer_id


async def sign_in(client: BackendClient, email: str, password: str) -> SessionContext:
    if not email or not password:
        raise ValidationError("Email and password are required.")

    try:
        result = await client.sign_in(email.strip(), password)
    except BackendError as e:
        raise from_backend_error(e) from e

    customer = result.get("customer") if isinstance(result.get("customer"), dict) else {}
    session = SessionContext(
        token=_first_str(
            result.get("token"), result.get("accessToken"), result.get("access_token")
        ),
        user_id=_first_str(customer.get("id"), result.get("id")),
    )
    logger.info(f"Signed in {email.strip()} as customer {session.user_id}")
    return session


async def get_profile(client: BackendClient, session: SessionContext) -> User:
    user_id = require_user(session)
    try:
        data = await client.get_customer(session, user_id)
    except BackendError as e:
        raise from_backend_error(e, not_found=UserNotFound) from e

    body = data.get("customer") if isinstance(data.get("customer"), dict) else data
    return User.model_validate({"id": user_id, **body})
