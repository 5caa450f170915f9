# tests/test_availability.py
from datetime import datetime, timedelta, timezone

import pytest

from fake_backend import session_for
from integrations.availability import CalendarAvailabilityOracle
from models.user import User

WHEN = datetime(2030, 7, 4, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def bob_user(bob) -> User:
    return User(id=bob["id"], name="Bob", email="bob@example.com")


@pytest.mark.asyncio
async def test_free_slot_is_available(client, backend, alice, bob_user):
    backend.add_note(bob_user.id, "Breakfast", "2030-07-04T08:00:00.000Z")
    oracle = CalendarAvailabilityOracle(client)

    result = await oracle.check(session_for(alice), bob_user, WHEN)

    assert result.is_available is True
    assert result.suggested_date is None


@pytest.mark.asyncio
async def test_overlap_suggests_next_free_day(client, backend, alice, bob_user):
    backend.add_note(bob_user.id, "Gym", "2030-07-04T18:30:00.000Z")
    backend.add_note(bob_user.id, "Gym", "2030-07-05T17:30:00.000Z")
    oracle = CalendarAvailabilityOracle(client)

    result = await oracle.check(session_for(alice), bob_user, WHEN)

    assert result.is_available is False
    assert result.suggested_date == WHEN + timedelta(days=2)
    assert "bob@example.com" in result.message


@pytest.mark.asyncio
async def test_no_free_day_in_window(client, backend, alice, bob_user):
    backend.add_note(bob_user.id, "Shift", "2030-07-04T18:00:00.000Z")
    backend.add_note(bob_user.id, "Shift", "2030-07-05T18:00:00.000Z")
    oracle = CalendarAvailabilityOracle(client, search_days=1)

    result = await oracle.check(session_for(alice), bob_user, WHEN)

    assert result.is_available is False
    assert result.suggested_date is None


@pytest.mark.asyncio
async def test_back_to_back_slots_do_not_overlap(client, backend, alice, bob_user):
    backend.add_note(bob_user.id, "Call", "2030-07-04T17:00:00.000Z")
    backend.add_note(bob_user.id, "Dinner", "2030-07-04T19:00:00.000Z")
    oracle = CalendarAvailabilityOracle(client)

    assert (await oracle.check(session_for(alice), bob_user, WHEN)).is_available is True


@pytest.mark.asyncio
async def test_unparseable_note_dates_are_ignored(client, backend, alice, bob_user):
    backend.add_note(bob_user.id, "???", "someday")
    oracle = CalendarAvailabilityOracle(client)

    assert (await oracle.check(session_for(alice), bob_user, WHEN)).is_available is True
