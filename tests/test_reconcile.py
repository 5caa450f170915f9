# tests/test_reconcile.py
from datetime import datetime, timedelta
from typing import Optional

from business.calendar.reconcile import apply_remote_batch, merge, remove_matching
from models.calendar import CalendarEvent

START = datetime(2030, 5, 17, 11, 0)


def event(title: str, id: Optional[str] = None, hours: int = 0, description: str = "") -> CalendarEvent:
    start = START + timedelta(hours=hours)
    return CalendarEvent(
        id=id, title=title, description=description, start=start, end=start + timedelta(hours=1)
    )


def test_remote_wins_on_id_collision():
    result = merge([event("local", id="1")], [event("remote", id="1")])
    assert [e.title for e in result] == ["remote"]
    assert result[0].id == "1"


def test_unmatched_local_draft_is_preserved():
    draft = event("draft")
    assert merge([draft], []) == [draft]


def test_local_with_unknown_id_is_kept():
    local = event("mine", id="9")
    remote = event("theirs", id="2")
    assert merge([local], [remote]) == [local, remote]


def test_merge_is_idempotent():
    local = [event("draft"), event("stale", id="1"), event("orphan", id="7", hours=2)]
    remote = [event("fresh", id="1"), event("other", id="2", hours=1)]

    once = merge(local, remote)
    assert merge(once, remote) == once


def test_merge_never_yields_duplicate_ids():
    local = [event("a", id="1"), event("a again", id="1")]
    remote = [event("b", id="2"), event("b dup", id="2"), event("c", id="3")]

    ids = [e.id for e in merge(local, remote) if e.id]
    assert len(ids) == len(set(ids))
    assert sorted(ids) == ["1", "2", "3"]


def test_identical_drafts_are_not_collapsed():
    drafts = [event("same"), event("same")]
    assert len(merge(drafts, [])) == 2


def test_apply_remote_batch_replaces_confirmed_subset():
    existing = [event("draft"), event("old", id="1"), event("gone", id="2")]
    fresh = [event("renamed", id="1"), event("new", id="3")]

    result = apply_remote_batch(existing, fresh)

    assert [e.title for e in result] == ["draft", "renamed", "new"]
    assert all(e.id != "2" for e in result)


def test_apply_remote_batch_dedupes_fresh_batch():
    fresh = [event("x", id="1"), event("x twice", id="1")]
    assert [e.title for e in apply_remote_batch([], fresh)] == ["x"]


def test_remove_matching_by_id():
    events = [event("a", id="5"), event("a", id="6"), event("draft")]
    remaining = remove_matching(events, event("whatever", id="5"))
    assert [e.id for e in remaining] == ["6", None]


def test_remove_matching_by_structure_for_drafts():
    keep = event("walk", hours=3)
    events = [event("walk"), keep, event("walk", id="4")]

    assert remove_matching(events, event("walk")) == [keep]
