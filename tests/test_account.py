# tests/test_account.py
import time

import jwt
import pytest

from business import account
from business.errors import Conflict, Unauthenticated, ValidationError
from fake_backend import session_for
from models.session import SessionContext
from utils.session import is_token_expired, require_user

NEW_CUSTOMER = {
    "name": "Dana",
    "lastName": "Reyes",
    "age": 29,
    "email": "dana@example.com",
    "password": "hunter22",
}


def make_token(exp: float) -> str:
    return jwt.encode({"sub": "1", "exp": int(exp)}, "signature-is-not-checked-by-the-client", algorithm="HS256")


@pytest.mark.asyncio
async def test_register_returns_new_customer_id(client, backend):
    customer_id = await account.register(client, NEW_CUSTOMER)

    assert customer_id in backend.customers
    stored = backend.customers[customer_id]
    assert stored["lastName"] == "Reyes"
    assert stored["age"] == 29


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value",
    [
        ("name", ""),
        ("lastName", ""),
        ("age", 0),
        ("email", "not-an-email"),
        ("password", "123"),
    ],
)
async def test_register_validates_before_sending(client, backend, field, value):
    with pytest.raises(ValidationError):
        await account.register(client, {**NEW_CUSTOMER, field: value})
    assert backend.calls == []


@pytest.mark.asyncio
async def test_register_duplicate_email_is_conflict(client, alice):
    with pytest.raises(Conflict):
        await account.register(client, {**NEW_CUSTOMER, "email": "alice@example.com"})


@pytest.mark.asyncio
async def test_sign_in_builds_session(client, alice):
    session = await account.sign_in(client, " alice@example.com ", "secret123")

    assert session.user_id == alice["id"]
    assert session.token == alice["token"]


@pytest.mark.asyncio
async def test_sign_in_with_bad_password(client, alice):
    with pytest.raises(Unauthenticated):
        await account.sign_in(client, "alice@example.com", "wrong-password")


@pytest.mark.asyncio
async def test_sign_in_requires_both_fields(client, backend):
    with pytest.raises(ValidationError):
        await account.sign_in(client, "alice@example.com", "")
    assert backend.calls == []


@pytest.mark.asyncio
async def test_get_profile(client, alice):
    user = await account.get_profile(client, session_for(alice))

    assert user.id == alice["id"]
    assert user.name == "Alice"
    assert user.last_name == "Tester"


@pytest.mark.asyncio
async def test_get_profile_requires_session(client):
    with pytest.raises(Unauthenticated):
        await account.get_profile(client, SessionContext())


def test_require_user_accepts_opaque_token():
    assert require_user(SessionContext(token="opaque", user_id="4")) == "4"


def test_require_user_rejects_missing_user():
    with pytest.raises(Unauthenticated):
        require_user(SessionContext(token="opaque"))
    with pytest.raises(Unauthenticated):
        require_user(None)


def test_require_user_rejects_expired_jwt():
    expired = SessionContext(token=make_token(time.time() - 60), user_id="4")
    with pytest.raises(Unauthenticated):
        require_user(expired)


def test_require_user_accepts_live_jwt():
    live = SessionContext(token=make_token(time.time() + 3600), user_id="4")
    assert require_user(live) == "4"


def test_is_token_expired_uses_given_clock():
    token = make_token(1_000)
    assert is_token_expired(token, now=2_000) is True
    assert is_token_expired(token, now=500) is False
