"""Reactive view of the current session as seen by a client.

States: ``pending`` (initial, before the token has been checked),
``authenticated`` and ``unauthenticated``. Nothing transitions back to
``pending``; a fresh ``CurrentSession`` stands for a page reload.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Client-visible authentication state."""

    PENDING = "pending"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


ALLOWED_TRANSITIONS: dict[SessionStatus, set[SessionStatus]] = {
    SessionStatus.PENDING: {SessionStatus.AUTHENTICATED, SessionStatus.UNAUTHENTICATED},
    SessionStatus.AUTHENTICATED: {SessionStatus.AUTHENTICATED, SessionStatus.UNAUTHENTICATED},
    SessionStatus.UNAUTHENTICATED: {SessionStatus.AUTHENTICATED},
}


class InvalidTransition(RuntimeError):
    """Raised when a state change is not allowed from the current state."""


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable state handed to subscribers."""

    status: SessionStatus
    data: dict[str, Any] | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is SessionStatus.PENDING

    @property
    def user(self) -> dict[str, Any] | None:
        return self.data.get("user") if self.data else None


Listener = Callable[[SessionSnapshot], None]


class CurrentSession:
    """Observable session state with an explicit transition table."""

    def __init__(self) -> None:
        self._snapshot = SessionSnapshot(SessionStatus.PENDING)
        self._listeners: list[Listener] = []
        self._resolved = asyncio.Event()

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def status(self) -> SessionStatus:
        return self._snapshot.status

    @property
    def data(self) -> dict[str, Any] | None:
        return self._snapshot.data

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every transition. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def resolved(self) -> SessionSnapshot:
        """Wait until the state has left ``pending``."""
        await self._resolved.wait()
        return self._snapshot

    def resolve(self, data: dict[str, Any] | None) -> None:
        """Settle the state from a token check: authenticated with ``data``, or not."""
        if data is None:
            self._transition(SessionStatus.UNAUTHENTICATED, None)
        else:
            self._transition(SessionStatus.AUTHENTICATED, data)

    def clear(self) -> None:
        """Sign-out or revocation. A no-op when already unauthenticated."""
        if self.status is SessionStatus.UNAUTHENTICATED:
            return
        self._transition(SessionStatus.UNAUTHENTICATED, None)

    def _transition(self, status: SessionStatus, data: dict[str, Any] | None) -> None:
        current = self._snapshot.status
        if status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(f"Cannot move from {current.value} to {status.value}")

        self._snapshot = SessionSnapshot(status, data)
        self._resolved.set()
        logger.debug(f"Session state {current.value} -> {status.value}")
        for listener in list(self._listeners):
            listener(self._snapshot)
