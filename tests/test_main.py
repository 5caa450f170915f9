# tests/test_main.py
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio

from business.errors import Unauthenticated
from main import MeetUpBuddy
from models.calendar import CalendarEvent

WHEN = datetime(2030, 9, 12, 19, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def app_for(transport):
    apps = []

    async def make(customer: dict) -> MeetUpBuddy:
        app = MeetUpBuddy("http://test", transport=transport, backoff_seconds=0)
        await app.sign_in(customer["email"], "secret123")
        apps.append(app)
        return app

    yield make
    for app in apps:
        await app.close()


@pytest.mark.asyncio
async def test_sign_in_loads_calendar(app_for, backend, alice):
    backend.add_note(alice["id"], "Dentist", "2030-02-02T09:00:00.000Z")

    app = await app_for(alice)

    assert app.session.user_id == alice["id"]
    assert [e.title for e in app.events] == ["Dentist"]


@pytest.mark.asyncio
async def test_sign_out_drops_session(app_for, alice):
    app = await app_for(alice)
    app.sign_out()

    with pytest.raises(Unauthenticated):
        await app.search("bob@example.com")


@pytest.mark.asyncio
async def test_friend_mutation_reloads_lists(app_for, alice, bob):
    alice_app = await app_for(alice)
    bob_app = await app_for(bob)

    request = await alice_app.add_friend("bob@example.com")
    assert [r.id for r in alice_app.friends.cached(alice["id"]).sent] == [request.id]

    await bob_app.answer_friend_request(request.id, accept=True)
    assert [f.id for f in bob_app.friends.cached(bob["id"]).friends] == [alice["id"]]


@pytest.mark.asyncio
async def test_accepted_invite_lands_in_calendar(app_for, backend, alice, bob):
    alice_app = await app_for(alice)
    bob_app = await app_for(bob)

    result = await alice_app.invite(["bob@example.com"], {"title": "Concert", "date": WHEN})
    outcome = await bob_app.answer_invite(result.proposals[0].id, accept=True)

    assert len(outcome.events) == 2
    assert [(e.title, e.start) for e in bob_app.events] == [("Concert", WHEN)]
    # The sender's view refreshes on their own next load
    assert alice_app.events == []
    assert [e.title for e in await alice_app.calendar.load(alice_app.session)] == ["Concert"]


@pytest.mark.asyncio
async def test_add_and_delete_event(app_for, backend, alice):
    app = await app_for(alice)

    saved = await app.add_event(CalendarEvent.draft("Swim", "", date(2030, 8, 1)))
    assert saved.id in backend.notes

    outcome = await app.delete_event(saved)
    assert outcome.removed == 1
    assert app.events == []
    assert saved.id not in backend.notes
