"""A holder of the latest event with a single pending notification."""

from __future__ import annotations

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class AtomicEvent(Generic[T]):
    """Keeps only the most recent event; at most one notification is pending."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._value: Optional[T] = None
        self._pending = False

    def send(self, event: T) -> None:
        """Store the event and mark a notification pending; never blocks."""
        with self._cond:
            self._value = event
            self._pending = True
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for and consume a pending notification; False on timeout."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._pending, timeout):
                return False
            self._pending = False
            return True

    def value(self) -> Optional[T]:
        """Return the latest event."""
        with self._cond:
            return self._value