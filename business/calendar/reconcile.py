"""
Merge rules for the displayed calendar.

Backend-confirmed events (with an id) are authoritative; local drafts (no id)
are carried through untouched. All functions are pure and return new lists.
"""
from typing import Iterable, List, Sequence, Set

from models.calendar import CalendarEvent


def dedupe_by_id(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    """Keep the first occurrence of every id; id-less events are all kept."""
    seen: Set[str] = set()
    result: List[CalendarEvent] = []
    for event in events:
        if event.id:
            if event.id in seen:
                continue
            seen.add(event.id)
        result.append(event)
    return result


def merge(
    local: Sequence[CalendarEvent], remote: Sequence[CalendarEvent]
) -> List[CalendarEvent]:
    """Fold `remote` into `local`; on an id collision the remote copy wins.

    Local entries come first, in order, followed by the remote entries.
    Idempotent: merge(merge(local, remote), remote) == merge(local, remote).
    """
    remote_unique = dedupe_by_id(remote)
    remote_ids = {event.id for event in remote_unique if event.id}
    kept_local = [event for event in local if not event.id or event.id not in remote_ids]
    return dedupe_by_id(kept_local) + remote_unique


def apply_remote_batch(
    existing: Sequence[CalendarEvent], fresh_remote: Sequence[CalendarEvent]
) -> List[CalendarEvent]:
    """Replace every previously confirmed event with `fresh_remote`.

    Drafts survive; confirmed events missing from the fresh batch are dropped,
    since the backend is the source of truth for anything with an id.
    """
    drafts = [event for event in existing if not event.id]
    return merge(drafts, fresh_remote)


def remove_matching(
    events: Sequence[CalendarEvent], target: CalendarEvent
) -> List[CalendarEvent]:
    """Drop entries matching `target`: by id when it has one, else structurally."""
    if target.id:
        return [event for event in events if event.id != target.id]
    return [event for event in events if event.structural_key != target.structural_key]
