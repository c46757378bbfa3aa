"""A pulse of light spreading out from a sensor, held, then drawn back in."""

from __future__ import annotations

import time

from .atomicevent import AtomicEvent
from .config import Config
from .led import Led
from .producer import AbstractProducer


class _Stopped(Exception):
    """Raised inside the worker when a stop was requested."""


class SensorLedProducer(AbstractProducer):
    """Run-up from ``led_index`` to both ends, hold, then run-down back to ``led_index``.

    New starts during the hold extend it; new starts during the run-down
    switch back to the run-up from the current position.
    """

    def __init__(self, uid: str, led_index: int, leds_changed: AtomicEvent, config: Config) -> None:
        super().__init__(uid, leds_changed, config.hardware.display.leds_total)
        cfg = config.sensor_led
        self.led_index = led_index
        self.hold_time = cfg.hold_time
        self.run_up_delay = cfg.run_up_delay
        self.run_down_delay = cfg.run_down_delay
        self.led_on = Led(cfg.led_rgb[0], cfg.led_rgb[1], cfg.led_rgb[2])

    def _run_up(self, left: int, right: int) -> tuple[int, int]:
        delay = self.run_up_delay.total_seconds()
        while True:
            if left >= 0:
                self._set_led(left, self.led_on)
            if right < self.leds_total:
                self._set_led(right, self.led_on)
            self._notify()
            if left <= 0 and right >= self.leds_total - 1:
                return left, right
            left -= 1
            right += 1
            if self._wait_stop(delay):
                raise _Stopped

    def _hold(self) -> float:
        hold = self.hold_time.total_seconds()
        while True:
            last_start = self.last_start()
            hold_until = last_start + hold
            now = time.monotonic()
            if now > hold_until:
                return last_start
            if self._wait_stop(hold_until - now):
                raise _Stopped

    def _run_down(self, left: int, right: int, last_start_seen: float) -> tuple[int, int, bool]:
        delay = self.run_down_delay.total_seconds()
        while True:
            if self.last_start() > last_start_seen:
                return left, right, True
            if 0 <= left <= self.led_index:
                self._set_led(left, Led())
            if self.led_index <= right < self.leds_total:
                self._set_led(right, Led())
            self._notify()
            if left == self.led_index and right == self.led_index:
                return left, right, self.last_start() > last_start_seen
            left += 1
            right -= 1
            if self._wait_stop(delay):
                raise _Stopped

    def run(self, start_time: float) -> None:
        left = right = self.led_index
        try:
            while True:
                left, right = self._run_up(left, right)
                seen = self._hold()
                left, right, restart = self._run_down(left, right, seen)
                if not restart:
                    return
        except _Stopped:
            return