"""
Bramka admina: dwa stany sesji (anonymous / authenticated).

Sesja to dowolny słownik (w aplikacji request.session ze Starlette),
stan trzymamy pod jednym kluczem.
"""
import hmac
import logging
from enum import Enum
from typing import Any, MutableMapping

from errors import BadRequest, Unauthorized

logger = logging.getLogger("giftcard-validator")

SESSION_KEY = "admin_state"


class AdminState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class AdminGate:
    def __init__(self, username: str, password: str):
        self._username = username
        self._password = password

    def state(self, session: MutableMapping[str, Any]) -> AdminState:
        if session.get(SESSION_KEY) == AdminState.AUTHENTICATED.value:
            return AdminState.AUTHENTICATED
        return AdminState.ANONYMOUS

    def is_authenticated(self, session: MutableMapping[str, Any]) -> bool:
        return self.state(session) is AdminState.AUTHENTICATED

    def login(self, session: MutableMapping[str, Any], username: Any, password: Any) -> AdminState:
        """
        Anonymous -> Authenticated tylko przy dokładnie zgodnym loginie i haśle.
        Brak pola: BadRequest, złe dane: Unauthorized (stan bez zmian).
        """
        if not username or not password:
            raise BadRequest("Username and password are required")

        if not (isinstance(username, str) and isinstance(password, str)) or not (
            _same(username, self._username) & _same(password, self._password)
        ):
            logger.warning("Nieudane logowanie admina (login: %r)", username)
            raise Unauthorized("Invalid credentials")

        session[SESSION_KEY] = AdminState.AUTHENTICATED.value
        logger.info("Admin zalogowany")
        return AdminState.AUTHENTICATED

    def logout(self, session: MutableMapping[str, Any]) -> AdminState:
        session.clear()
        logger.info("Admin wylogowany")
        return AdminState.ANONYMOUS

    def require(self, session: MutableMapping[str, Any]) -> None:
        if not self.is_authenticated(session):
            raise Unauthorized()


def _same(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))
