"""Shared machinery for LED producers running in a worker thread."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

from .atomicevent import AtomicEvent
from .led import Led

log = logging.getLogger(__name__)


class AbstractProducer(ABC):
    """Base of all producers; subclasses implement :meth:`run`.

    ``run`` must return once :attr:`_stop_event` is set.
    """

    def __init__(self, uid: str, leds_changed: AtomicEvent, leds_total: int) -> None:
        self.uid = uid
        self.leds_total = leds_total
        self.leds_changed = leds_changed
        self._leds = [Led()] * leds_total
        self._leds_lock = threading.RLock()
        self._update_lock = threading.RLock()
        self._running = False
        self._exited = False
        self._last_start = 0.0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @abstractmethod
    def run(self, start_time: float) -> None:
        """The worker body."""

    def _set_led(self, index: int, value: Led) -> None:
        with self._leds_lock:
            self._leds[index] = value
            self.leds_changed.send(self)

    def _set_all(self, value: Led) -> None:
        with self._leds_lock:
            self._leds = [value] * self.leds_total
            self.leds_changed.send(self)

    def _notify(self) -> None:
        self.leds_changed.send(self)

    def _wait_stop(self, timeout: Optional[float]) -> bool:
        """Sleep up to ``timeout`` seconds; True if a stop was requested."""
        return self._stop_event.wait(timeout)

    def leds(self) -> list[Led]:
        """A copy of the current LED values."""
        with self._leds_lock:
            return list(self._leds)

    def last_start(self) -> float:
        """Monotonic time of the latest :meth:`start` call."""
        with self._update_lock:
            return self._last_start

    def is_running(self) -> bool:
        with self._update_lock:
            return self._running

    def start(self) -> None:
        """Start the worker unless running or exited; always records the start time."""
        with self._update_lock:
            self._last_start = time.monotonic()
            if not self._running and not self._exited:
                self._running = True
                self._stop_event.clear()
                self._thread = threading.Thread(
                    target=self._worker, args=(self._last_start,), name=self.uid, daemon=True
                )
                self._thread.start()

    def _worker(self, start_time: float) -> None:
        try:
            self.run(start_time)
        except Exception:
            log.exception("Producer %s failed", self.uid)
        finally:
            with self._update_lock:
                self._running = False

    def stop(self) -> None:
        """Ask a running worker to end."""
        with self._update_lock:
            if self._running and not self._exited:
                self._stop_event.set()

    def exit(self) -> None:
        """Stop the worker for good; later starts do nothing."""
        with self._update_lock:
            self._stop_event.set()
            self._exited = True