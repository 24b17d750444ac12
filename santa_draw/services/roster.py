from __future__ import annotations

from ..errors import InvalidInput
from ..models import RosterEntry
from .store import ParticipantStore


def add_participant(store: ParticipantStore, name: str | None) -> RosterEntry:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Name is required.")
    return store.insert(name)


def reset_draws(store: ParticipantStore) -> int:
    """Clear every draw; running it twice leaves the same roster as once."""
    return store.reset_all()


def clear_roster(store: ParticipantStore) -> int:
    return store.delete_all()


def pending_participants(roster: list[RosterEntry]) -> list[RosterEntry]:
    return [p for p in roster if not p.has_drawn]
