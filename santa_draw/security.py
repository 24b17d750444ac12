from __future__ import annotations

import base64
import hashlib
import json

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app
from passlib.context import CryptContext


pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
)


def hash_admin_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_admin_password(candidate: str | None) -> bool:
    """Check a submitted password against the hash built from ADMIN_PASSWORD at startup."""
    stored_hash = current_app.config.get("ADMIN_PASSWORD_HASH")
    if not stored_hash or not candidate:
        return False
    return pwd_context.verify(candidate, stored_hash)


# ---------------------------------------------------------------------------
# Ticket links
#
# The shareable ticket URL carries a Fernet token with the Santa and target
# names, so the link does not spell out who drew whom and stops working
# after TICKET_TTL_SECONDS.
# ---------------------------------------------------------------------------


def _ticket_fernet() -> Fernet:
    """Returns a Fernet instance keyed by TICKET_ENC_KEY or derived from SECRET_KEY."""
    explicit = (current_app.config.get("TICKET_ENC_KEY") or "").strip()
    if explicit:
        # Expect a urlsafe base64-encoded 32-byte key.
        return Fernet(explicit.encode("utf-8"))

    secret = (current_app.config.get("SECRET_KEY") or "").encode("utf-8")
    digest = hashlib.sha256(b"santa-draw-tickets|" + secret).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def issue_ticket_token(picker: str, target: str) -> str:
    payload = json.dumps({"picker": picker, "target": target}).encode("utf-8")
    return _ticket_fernet().encrypt(payload).decode("utf-8")


def read_ticket_token(token: str) -> dict:
    """Decrypt a ticket token -> {"picker", "target"}. Raises ValueError when invalid or expired."""
    ttl = int(current_app.config.get("TICKET_TTL_SECONDS", 900))
    try:
        raw = _ticket_fernet().decrypt(token.encode("utf-8"), ttl=ttl)
        data = json.loads(raw.decode("utf-8"))
        return {"picker": str(data["picker"]), "target": str(data["target"])}
    except (InvalidToken, ValueError, TypeError, KeyError) as e:
        raise ValueError("Invalid ticket token") from e
