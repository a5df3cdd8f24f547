import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from notifications import Notifier
from schemas import UserOut
from storage import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_KEY = "user_session"

Listener = Callable[[Optional[UserOut]], None]


class SessionService:
    """Holds the signed-in user and tells subscribers when identity changes.

    With a `session_key` the user is also kept in storage so `restore()` can
    pick the session back up. The HTTP layer passes `session_key=None` since
    the bearer token already carries the identity.
    """

    def __init__(self, storage: Optional[KeyValueStore] = None, notifier: Optional[Notifier] = None,
                 session_key: Optional[str] = SESSION_KEY):
        self.storage = storage
        self.notifier = notifier or Notifier()
        self.session_key = session_key
        self._user: Optional[UserOut] = None
        self._listeners: List[Listener] = []

    @property
    def user(self) -> Optional[UserOut]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def attach(self, user: Optional[UserOut]) -> None:
        """Switch identity without persisting or announcing it."""
        self._user = user
        for listener in list(self._listeners):
            listener(user)

    def login(self, user: UserOut) -> None:
        if self._persisted:
            self.storage.set_json(self.session_key, user.model_dump(mode="json"))
        logger.info("User %s signed in", user.id)
        self.attach(user)
        self.notifier.notify("Login Successful", f"Welcome back, {user.name}!")

    def logout(self) -> None:
        if self._user is not None:
            logger.info("User %s signed out", self._user.id)
        if self._persisted:
            self.storage.remove(self.session_key)
        self.attach(None)
        self.notifier.notify("Logged Out", "You have been successfully logged out.")

    def restore(self) -> Optional[UserOut]:
        if not self._persisted:
            return None
        data = self.storage.get_json(self.session_key)
        if data is None:
            # absent, or malformed and already logged by the store
            if self.storage.get(self.session_key) is not None:
                self.storage.remove(self.session_key)
            return None
        try:
            user = UserOut.model_validate(data)
        except ValidationError:
            logger.warning("Failed to parse stored user, clearing session")
            self.storage.remove(self.session_key)
            return None
        self.attach(user)
        return user

    @property
    def _persisted(self) -> bool:
        return self.storage is not None and self.session_key is not None
