from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask_login import UserMixin

from .extensions import db, login_manager


class Participant(UserMixin, db.Model):
    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    # Unique by convention only; picked_who snapshots this value.
    name = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # --- Draw state ---
    has_drawn = db.Column(db.Boolean, default=False, nullable=False)
    is_picked = db.Column(db.Boolean, default=False, nullable=False)
    picked_who = db.Column(db.String(64), nullable=True)

    def to_entry(self) -> "RosterEntry":
        return RosterEntry(
            id=self.id,
            name=self.name,
            has_drawn=bool(self.has_drawn),
            is_picked=bool(self.is_picked),
            picked_who=self.picked_who,
        )

    def __repr__(self) -> str:
        return f"<Participant {self.id} {self.name!r}>"


@dataclass(frozen=True)
class RosterEntry:
    """
    Detached, immutable view of one participant row.

    The draw engine only ever sees these, so a session keeps the roster it
    was entered with even if the table changes underneath it.
    """
    id: int
    name: str
    has_drawn: bool = False
    is_picked: bool = False
    picked_who: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "has_drawn": self.has_drawn,
            "is_picked": self.is_picked,
            "picked_who": self.picked_who,
        }

    def to_card(self) -> dict:
        """Just enough to show a card; other people's draw state stays server-side."""
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "RosterEntry":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            has_drawn=bool(data.get("has_drawn", False)),
            is_picked=bool(data.get("is_picked", False)),
            picked_who=data.get("picked_who"),
        )


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(Participant, int(user_id))
