from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy import delete, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ..errors import AlreadyDrawn, StoreUnavailable, TargetTaken
from ..extensions import db
from ..models import Participant, RosterEntry

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = frozenset({"name", "has_drawn", "is_picked", "picked_who"})

CLEARED_DRAW_STATE = {"has_drawn": False, "is_picked": False, "picked_who": None}


class ParticipantStore:
    """
    Row store for the participants table.

    Everything handed out is a RosterEntry snapshot; ORM rows never leave
    this module. Any database failure is rolled back and re-raised as
    StoreUnavailable.
    """

    def __init__(self, session=None, retries: int = 3):
        self._session = session
        self.retries = max(1, int(retries))

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Participant store failed to %s", action)
            raise StoreUnavailable(f"Could not {action}.") from e

    def list(self) -> list[RosterEntry]:
        with self._guard("list participants"):
            rows = self.session.execute(
                select(Participant).order_by(Participant.name.asc(), Participant.id.asc())
            ).scalars().all()
            return [p.to_entry() for p in rows]

    def get(self, participant_id: int) -> RosterEntry | None:
        with self._guard("load participant"):
            p = self.session.get(Participant, participant_id)
            return p.to_entry() if p else None

    def insert(self, name: str) -> RosterEntry:
        with self._guard("add participant"):
            p = Participant(name=name, **CLEARED_DRAW_STATE)
            self.session.add(p)
            self.session.commit()
            logger.info("Added participant %s (%r)", p.id, p.name)
            return p.to_entry()

    def update_fields(self, participant_id: int, **fields) -> bool:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown participant fields: {', '.join(sorted(unknown))}")
        if not fields:
            return False

        with self._guard("update participant"):
            result = self.session.execute(
                update(Participant).where(Participant.id == participant_id).values(**fields)
            )
            self.session.commit()
            return result.rowcount > 0

    def reset_all(self) -> int:
        with self._guard("reset draws"):
            result = self.session.execute(update(Participant).values(**CLEARED_DRAW_STATE))
            self.session.commit()
            logger.info("Reset draw state on %d participants", result.rowcount)
            return result.rowcount

    def delete_all(self) -> int:
        with self._guard("clear participants"):
            result = self.session.execute(delete(Participant))
            self.session.commit()
            logger.info("Deleted %d participants", result.rowcount)
            return result.rowcount

    def commit_draw(self, actor_id: int, target_id: int, target_name: str) -> None:
        """
        Record a finished draw as one transaction.

        The target is claimed only while is_picked is still false and the
        actor is marked only while has_drawn is still false, so two sessions
        racing for the same card cannot both win. Transient errors roll the
        whole pair back and retry it with the same values.
        """
        for attempt in range(1, self.retries + 1):
            try:
                self._claim_pair(actor_id, target_id, target_name)
                logger.info("Participant %s drew %r (id %s)", actor_id, target_name, target_id)
                return
            except (TargetTaken, AlreadyDrawn):
                self.session.rollback()
                raise
            except OperationalError as e:
                self.session.rollback()
                logger.warning(
                    "Draw commit for participant %s failed (attempt %d/%d): %s",
                    actor_id, attempt, self.retries, e,
                )
                if attempt == self.retries:
                    raise StoreUnavailable("Could not save your draw. Please try again.") from e
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.exception("Draw commit for participant %s failed", actor_id)
                raise StoreUnavailable("Could not save your draw. Please try again.") from e

    def _claim_pair(self, actor_id: int, target_id: int, target_name: str) -> None:
        claimed = self.session.execute(
            update(Participant)
            .where(Participant.id == target_id, Participant.is_picked.is_(False))
            .values(is_picked=True)
        ).rowcount
        if not claimed:
            if self._already_recorded(actor_id, target_id, target_name):
                return
            raise TargetTaken(f"{target_name} was just picked by someone else.")

        marked = self.session.execute(
            update(Participant)
            .where(Participant.id == actor_id, Participant.has_drawn.is_(False))
            .values(has_drawn=True, picked_who=target_name)
        ).rowcount
        if not marked:
            if self._already_recorded(actor_id, target_id, target_name):
                return
            raise AlreadyDrawn("You have already drawn a name.")

        self.session.commit()

    def _already_recorded(self, actor_id: int, target_id: int, target_name: str) -> bool:
        """True when this exact pair is already in the table, e.g. a resent confirm."""
        self.session.rollback()
        actor = self.session.get(Participant, actor_id)
        target = self.session.get(Participant, target_id)
        return bool(
            actor is not None
            and target is not None
            and actor.has_drawn
            and actor.picked_who == target_name
            and target.is_picked
        )
