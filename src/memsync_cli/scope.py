"""Which records the current actor may see."""

import threading
from typing import Callable, Iterable, Optional

from loguru import logger

from .models import ANONYMOUS_OWNER, Memory


ActorListener = Callable[[Optional[str], str], None]


class OwnershipScope:
    """Tracks the current actor and filters records by owner.

    The actor is an authenticated user id or ``ANONYMOUS_OWNER``. A record is
    visible when it belongs to the actor or to the anonymous pseudo-owner.
    Anonymous records are never re-owned when somebody logs in.
    """

    def __init__(self, actor: Optional[str] = None) -> None:
        self._actor = actor or ANONYMOUS_OWNER
        self._listeners: list[ActorListener] = []
        self._lock = threading.Lock()

    @property
    def actor(self) -> str:
        return self._actor

    @property
    def is_authenticated(self) -> bool:
        return self._actor != ANONYMOUS_OWNER

    def subscribe(self, listener: ActorListener) -> None:
        """Call ``listener(previous, current)`` whenever a real actor takes over."""
        with self._lock:
            self._listeners.append(listener)

    def set_actor(self, owner_id: Optional[str]) -> bool:
        """Switch the current actor. None (or "") means anonymous.

        Returns:
            True if the actor changed
        """
        new_actor = owner_id or ANONYMOUS_OWNER
        with self._lock:
            previous = self._actor
            if new_actor == previous:
                return False
            self._actor = new_actor
            listeners = list(self._listeners)

        logger.info(f"Actor changed from {previous} to {new_actor}")
        if new_actor != ANONYMOUS_OWNER:
            for listener in listeners:
                listener(previous if previous != ANONYMOUS_OWNER else None, new_actor)
        return True

    def can_see(self, record: Memory) -> bool:
        return record.owner_id in (self._actor, ANONYMOUS_OWNER)

    def visible(self, records: Iterable[Memory]) -> list[Memory]:
        actor = self._actor
        return [r for r in records if r.owner_id == actor or r.owner_id == ANONYMOUS_OWNER]
