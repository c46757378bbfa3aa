"""A light bar sweeping back and forth along the stripe."""

from __future__ import annotations

import math
import time

from .atomicevent import AtomicEvent
from .config import Config
from .led import Led
from .producer import AbstractProducer


def _next_tick(current: float, delay: float, now: float) -> float:
    while current <= now:
        current += delay
    return current


class CylonProducer(AbstractProducer):
    """Moves a bar of ``width`` LEDs by ``step`` each tick, bouncing at the ends."""

    def __init__(self, uid: str, leds_changed: AtomicEvent, config: Config) -> None:
        super().__init__(uid, leds_changed, config.hardware.display.leds_total)
        cfg = config.cylon_led
        self.color = Led(cfg.led_rgb[0], cfg.led_rgb[1], cfg.led_rgb[2])
        self.step = cfg.step
        self.x = 0.0
        self.direction = 1
        self.radius = int(cfg.width / 2)
        self.duration = cfg.duration
        self.delay = cfg.delay

    def _scaled(self, factor: float) -> Led:
        return Led(self.color.red * factor, self.color.green * factor, self.color.blue * factor)

    def step_frame(self) -> None:
        """Advance the bar one step and redraw the LEDs."""
        if self.x < 0 or self.x > self.leds_total - 1:
            self.direction = -self.direction
        self.x += self.direction * self.step
        left = self.x - self.radius
        right = self.x + self.radius
        first = math.floor(left)
        last = math.floor(right + 1)
        frame = []
        for i in range(self.leds_total):
            if i < int(left) or i > int(right + 1):
                frame.append(Led())
            elif i == first:
                frame.append(self._scaled(1 - (left - i)))
            elif i == last:
                frame.append(self._scaled(1 - (i - right)))
            else:
                frame.append(self.color)
        with self._leds_lock:
            self._leds = frame
        self._notify()

    def run(self, start_time: float) -> None:
        delay = self.delay.total_seconds()
        duration = self.duration.total_seconds()
        if delay <= 0 or duration <= 0:
            raise ValueError("CylonLED Delay and Duration must be positive")
        deadline = start_time + duration
        next_tick = start_time + delay
        try:
            while True:
                now = time.monotonic()
                if self._wait_stop(max(0.0, min(deadline, next_tick) - now)):
                    return
                now = time.monotonic()
                if now >= deadline:
                    return
                if now >= next_tick:
                    next_tick = _next_tick(next_tick, delay, now)
                    self.step_frame()
        finally:
            self._set_all(Led())