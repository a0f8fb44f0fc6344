from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Callable, List, Optional

import bcrypt

from pos_app.constants import AUTH_SIGNED_IN, AUTH_SIGNED_OUT
from pos_app.errors import AuthError
from pos_app.services.ports import AuthCallback, Session, User

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


def hash_password(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def check_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # malformed hash
        return False


class AuthState:
    """
    Holds the signed-in session of a data service and notifies listeners,
    the way a hosted backend client reports SIGNED_IN / SIGNED_OUT.
    """

    def __init__(self) -> None:
        self.session: Optional[Session] = None
        self._listeners: List[AuthCallback] = []

    def subscribe(self, callback: AuthCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def start(self, user_id: int, email: str, password: str, stored_hash: str | None) -> Session:
        if not stored_hash or not check_password(password, stored_hash):
            logger.warning("sign in rejected for %s", email)
            raise AuthError("Invalid login credentials")
        self.session = Session(
            user=User(id=user_id, email=email),
            token=secrets.token_urlsafe(24),
            created_at=datetime.now(),
        )
        self._emit(AUTH_SIGNED_IN)
        return self.session

    def end(self) -> None:
        if self.session is None:
            return
        self.session = None
        self._emit(AUTH_SIGNED_OUT)

    def _emit(self, event: str) -> None:
        for cb in list(self._listeners):
            cb(event, self.session)
