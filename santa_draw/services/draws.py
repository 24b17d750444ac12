from __future__ import annotations

import enum
import logging
import random
import time
from typing import Callable, Iterable

from ..errors import TargetTaken
from ..models import RosterEntry

logger = logging.getLogger(__name__)

DEFAULT_SHUFFLE_STEPS = 8
DEFAULT_SHUFFLE_INTERVAL = 0.35


class DrawState(str, enum.Enum):
    IDLE = "idle"
    POOL_READY = "pool_ready"
    SHUFFLING = "shuffling"
    READY = "ready"
    CONFIRMING = "confirming"
    COMMITTED = "committed"
    EXHAUSTED = "exhausted"


def eligible_pool(actor: RosterEntry, roster: Iterable[RosterEntry]) -> list[RosterEntry]:
    """Everyone the actor may still draw: not already picked, and not themselves."""
    return [p for p in roster if not p.is_picked and p.id != actor.id]


def fisher_yates(items: list, rng: random.Random) -> list:
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


class DrawSession:
    """
    One participant's trip from picking their name to a committed draw.

    The shuffle is a fixed schedule: the step orders are computed when it
    starts and the session reports SHUFFLING until the last step's slot has
    passed on the clock. Nothing can stop it early, and every action other
    than exit is ignored meanwhile.
    """

    def __init__(
        self,
        steps: int = DEFAULT_SHUFFLE_STEPS,
        interval: float = DEFAULT_SHUFFLE_INTERVAL,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.steps = max(1, int(steps))
        self.interval = max(0.0, float(interval))
        self.rng = rng or random.SystemRandom()
        self.clock = clock

        self._state = DrawState.IDLE
        self.actor: RosterEntry | None = None
        self.pool: list[RosterEntry] = []
        self.candidate: RosterEntry | None = None
        self.committed_target: RosterEntry | None = None
        self.shuffle_started_at: float | None = None

    # --- State ---

    @property
    def state(self) -> DrawState:
        if self._state is DrawState.SHUFFLING and self._shuffle_finished():
            self._state = DrawState.READY
            self.shuffle_started_at = None
        return self._state

    @property
    def is_shuffling(self) -> bool:
        return self.state is DrawState.SHUFFLING

    @property
    def shuffle_duration(self) -> float:
        return self.steps * self.interval

    def _shuffle_finished(self) -> bool:
        if self.shuffle_started_at is None:
            return True
        return self.clock() >= self.shuffle_started_at + self.shuffle_duration

    def _ignored(self, action: str) -> None:
        logger.debug("Ignoring %s while %s", action, self._state.value)

    # --- Transitions ---

    def enter(self, actor: RosterEntry, roster: Iterable[RosterEntry]) -> DrawState:
        if self.state is not DrawState.IDLE:
            self._ignored("enter")
            return self.state
        if actor.has_drawn:
            logger.info("Participant %s already drew; not starting a session", actor.id)
            return self.state

        self.actor = actor
        self.pool = fisher_yates(eligible_pool(actor, roster), self.rng)
        self.candidate = None
        self.committed_target = None
        self.shuffle_started_at = None
        self._state = DrawState.POOL_READY if self.pool else DrawState.EXHAUSTED
        return self._state

    def shuffle(self) -> list[list[int]] | None:
        """
        Start the shuffle and return the pool order after each step.

        Returns None (and changes nothing) unless the session is waiting for
        a shuffle or ready to pick.
        """
        if self.state not in (DrawState.POOL_READY, DrawState.READY):
            self._ignored("shuffle")
            return None

        orders = []
        order = self.pool
        for _ in range(self.steps):
            order = fisher_yates(order, self.rng)
            orders.append([p.id for p in order])

        self.pool = order
        self.candidate = None
        self.shuffle_started_at = self.clock()
        self._state = DrawState.SHUFFLING
        return orders

    def select(self, target_id: int) -> bool:
        if self.state is not DrawState.READY:
            self._ignored("select")
            return False
        target = self._pool_entry(target_id)
        if target is None:
            return False
        self.candidate = target
        self._state = DrawState.CONFIRMING
        return True

    def cancel(self) -> None:
        if self.state is DrawState.CONFIRMING:
            self.candidate = None
            self._state = DrawState.READY
        elif self.state is DrawState.EXHAUSTED:
            self.exit()
        else:
            self._ignored("cancel")

    def exit(self) -> None:
        self._state = DrawState.IDLE
        self.actor = None
        self.pool = []
        self.candidate = None
        self.committed_target = None
        self.shuffle_started_at = None

    def confirm(self, store) -> RosterEntry | None:
        """
        Write the pending pick through ``store.commit_draw``.

        On any store error the exception propagates and the session stays
        CONFIRMING, except when the card was lost to another session: that
        card is dropped from the pool and the session goes back to READY
        (or EXHAUSTED when nothing is left).
        """
        if self.state is not DrawState.CONFIRMING or self.candidate is None:
            self._ignored("confirm")
            return None

        actor, target = self.actor, self.candidate
        try:
            store.commit_draw(actor.id, target.id, target.name)
        except TargetTaken:
            self.pool = [p for p in self.pool if p.id != target.id]
            self.candidate = None
            self._state = DrawState.READY if self.pool else DrawState.EXHAUSTED
            raise

        self.committed_target = target
        self.candidate = None
        self._state = DrawState.COMMITTED
        return target

    def _pool_entry(self, target_id: int) -> RosterEntry | None:
        for p in self.pool:
            if p.id == target_id:
                return p
        return None

    # --- Persistence ---

    def to_dict(self) -> dict:
        state = self.state
        return {
            "state": state.value,
            "actor": self.actor.to_card() if self.actor else None,
            "pool": [p.to_card() for p in self.pool],
            "candidate": self.candidate.to_card() if self.candidate else None,
            "committed_target": self.committed_target.to_card() if self.committed_target else None,
            "shuffle_started_at": self.shuffle_started_at,
        }

    @classmethod
    def from_dict(cls, data: dict | None, **kwargs) -> "DrawSession":
        session = cls(**kwargs)
        if not data:
            return session

        def entry(key):
            return RosterEntry.from_dict(data[key]) if data.get(key) else None

        try:
            session._state = DrawState(data.get("state", DrawState.IDLE.value))
        except ValueError:
            return session
        session.actor = entry("actor")
        session.pool = [RosterEntry.from_dict(p) for p in data.get("pool") or []]
        session.candidate = entry("candidate")
        session.committed_target = entry("committed_target")
        session.shuffle_started_at = data.get("shuffle_started_at")
        return session
