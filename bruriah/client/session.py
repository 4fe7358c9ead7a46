"""
AUTH SESSION MODULE
===================

Holds the signed-in user for the chat client and tells interested code when
that changes. Listeners are registered explicitly with subscribe(); the
returned Subscription is a context manager, so leaving the `with` block
always removes the listener:

    with session.subscribe(on_change):
        ...   # on_change(event, user) fires on SIGNED_IN / SIGNED_OUT

A new listener is called once right away with INITIAL_SESSION and the
current user (or None).
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger("Bruriah")

INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthUser:
    id: str
    username: str


SessionListener = Callable[[str, Optional[AuthUser]], None]


class Subscription:
    """Handle for one registered listener. Unsubscribing twice is a no-op."""

    def __init__(self, session: "AuthSession", listener: SessionListener):
        self._session = session
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._session._remove(self._listener)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.unsubscribe()
        return False


class AuthSession:
    """Current identity plus the listeners waiting for it to change."""

    def __init__(self, user: Optional[AuthUser] = None):
        self._user = user
        self._listeners: List[SessionListener] = []
        self._lock = threading.Lock()

    @property
    def user(self) -> Optional[AuthUser]:
        return self._user

    def subscribe(self, listener: SessionListener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        listener(INITIAL_SESSION, self._user)
        return Subscription(self, listener)

    def _remove(self, listener: SessionListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit(self, event: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event, self._user)

    def sign_in(self, user: AuthUser) -> None:
        self._user = user
        logger.info("Signed in as %s", user.username)
        self._emit(SIGNED_IN)

    def sign_out(self) -> None:
        if self._user is None:
            return
        logger.info("Signed out %s", self._user.username)
        self._user = None
        self._emit(SIGNED_OUT)
