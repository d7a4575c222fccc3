"""
Login by email, recording the logged-in creator for subsequent loads.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from logging import Logger
from typing import Any

from .database import Database

__all__ = [
    "LoginResult",
    "login_by_email",
]


@dataclass(kw_only=True)
class LoginResult:
    ok: bool
    user: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True, "user": self.user}
        return {"ok": False, "error": self.error}


def login_by_email(
    db: Database, email: str, *, logger: Logger | None = None
) -> LoginResult:
    """
    Look up the creator with the given email, creating one if none exists,
    and store it in `prefs` as the logged-in user.
    """
    logger = logger or logging.getLogger()
    email = (email or "").strip().lower()

    if not email or "@" not in email:
        return LoginResult(ok=False, error="Please provide a valid email.")

    try:
        with db.transaction() as cur:
            cur.execute(
                "SELECT id, email, display_name FROM creators"
                " WHERE lower(email) = %s LIMIT 1",
                (email,),
            )
            creator = cur.fetchone()

            if creator is None:
                cur.execute(
                    "INSERT INTO creators (email, display_name)"
                    " VALUES (%s, %s) RETURNING id, email, display_name",
                    (email, email.split("@")[0]),
                )
                creator = cur.fetchone()
                logger.info(f"Created creator for '{email}'")

            assert creator is not None

            user = {
                "id": creator["id"],
                "email": creator["email"],
                "name": creator["display_name"],
            }

            cur.execute(
                "UPDATE creators SET last_login_at = now() WHERE id = %s",
                (creator["id"],),
            )
            cur.execute(
                "INSERT INTO prefs(key, value) VALUES ('auth_user', %s::jsonb)"
                " ON CONFLICT (key) DO UPDATE"
                " SET value = EXCLUDED.value, updated_at = now()",
                (json.dumps(user),),
            )

    except Exception as e:
        logger.error(f"Login failed for '{email}': {e}")
        return LoginResult(ok=False, error=str(e))

    logger.info(f"Logged in as {user['email']} ({user['id']})")
    return LoginResult(ok=True, user=user)
