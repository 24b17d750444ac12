from __future__ import annotations

from flask import current_app

from .store import ParticipantStore


def get_store() -> ParticipantStore:
    return ParticipantStore(retries=current_app.config.get("COMMIT_RETRIES", 3))
