"""Light the whole stripe in one colour for a fixed time."""

from __future__ import annotations

from .atomicevent import AtomicEvent
from .config import Config
from .led import Led
from .producer import AbstractProducer


class HoldProducer(AbstractProducer):
    """Keeps every LED lit in the hold colour until the hold time ends or it is stopped."""

    def __init__(self, uid: str, leds_changed: AtomicEvent, config: Config) -> None:
        super().__init__(uid, leds_changed, config.hardware.display.leds_total)
        rgb = config.hold_led.led_rgb
        self.led_on_hold = Led(rgb[0], rgb[1], rgb[2])
        self.hold_time = config.hold_led.hold_time

    def run(self, start_time: float) -> None:
        try:
            self._set_all(self.led_on_hold)
            self._wait_stop(self.hold_time.total_seconds())
        finally:
            self._set_all(Led())